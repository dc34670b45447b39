import csv
import io


def to_csv(header, rows) -> str:
    """
    RFC 4180 text with LF line endings. None becomes an empty field; fields
    holding a comma, quote or newline are quoted with quotes doubled.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n", quoting=csv.QUOTE_MINIMAL)
    writer.writerow(header)
    for row in rows:
        writer.writerow(["" if v is None else v for v in row])
    return buf.getvalue()
