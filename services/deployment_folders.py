from pathlib import Path

from core.errors import BadRequestError, ConfigurationError, NotFoundError

MAX_FILE_BYTES = 512_000
SUMMARY_DEPTH = 3

SCRIPT_EXTS = (".ps1", ".psm1", ".bat", ".cmd")
LOG_EXTS = (".log", ".txt")
DATA_EXTS = (".xml", ".json", ".csv")
SQL_EXTS = (".sql",)
CONFIG_EXTS = (".config", ".yml", ".yaml")

# artifact label -> folder name / path fragment that marks it
ARTIFACT_MARKERS = {
    "DDL": "ddl",
    "DML": "dml",
    "Web": "web",
    "Architect": "architect",
    "Gateway": "gateway",
    "Fitnesse": "fitnesse",
}


def _category(file_name: str) -> str:
    name = file_name.lower()
    if name.endswith(SCRIPT_EXTS):
        return "scripts"
    if name.endswith(LOG_EXTS):
        return "logs"
    if name.endswith(DATA_EXTS):
        return "data"
    if name.endswith(SQL_EXTS):
        return "sql"
    if name.endswith(CONFIG_EXTS):
        return "config"
    return "other"


def _stat(path: Path, info: dict) -> dict:
    try:
        st = path.stat()
        info["size"] = st.st_size
        info["modified"] = int(st.st_mtime * 1000)
    except OSError:
        info["size"] = -1
    return info


def _count_children(path: Path) -> int:
    try:
        return sum(1 for _ in path.iterdir())
    except OSError:
        return -1


class DeploymentFolderBrowser:
    """
    Read-only view of the deployments share: <root>/<year>/<month>/<release or CHG>/...
    Paths in and out are '/'-separated and relative to the root.
    """

    def __init__(self, root):
        self.root = root

    def _root(self) -> Path:
        if not self.root:
            raise ConfigurationError("Deployments path not configured. Set RELEASE_DEPLOYMENTS_PATH in the environment or .env")
        return Path(self.root)

    def _resolve(self, *parts) -> Path:
        root = self._root()
        path = root.joinpath(*[p for part in parts for p in str(part).split("/") if p])
        if path.resolve() != root.resolve() and root.resolve() not in path.resolve().parents:
            raise BadRequestError(f"Path escapes the deployments root: {'/'.join(map(str, parts))}")
        return path

    @staticmethod
    def _require_dir(path: Path):
        if not path.exists():
            raise NotFoundError(f"No such folder: {path}")
        if not path.is_dir():
            raise BadRequestError(f"Not a folder: {path}")

    def _sorted_dir_names(self, path: Path):
        self._require_dir(path)
        return sorted((p.name for p in path.iterdir() if p.is_dir()), reverse=True)

    def list_years(self):
        return self._sorted_dir_names(self._root())

    def list_months(self, year):
        return self._sorted_dir_names(self._resolve(year))

    def list_releases(self, year, month):
        month_dir = self._resolve(year, month)
        releases = []
        for name in self._sorted_dir_names(month_dir):
            if name.startswith("release-"):
                kind = "release"
            elif name.startswith("CHG"):
                kind = "chg"
            else:
                kind = "other"
            releases.append({
                "name": name,
                "type": kind,
                "path": f"{year}/{month}/{name}",
                "childCount": _count_children(month_dir / name),
            })
        return releases

    def folder_contents(self, relative_path):
        folder = self._resolve(relative_path)
        self._require_dir(folder)
        relative_path = relative_path.strip("/")

        folders, files = [], []
        for entry in sorted(folder.iterdir(), key=lambda p: p.name):
            child_path = f"{relative_path}/{entry.name}"
            if entry.is_dir():
                is_chg = entry.name.startswith("CHG")
                child = {"name": entry.name, "type": "chg" if is_chg else "folder", "path": child_path}
                if is_chg:
                    child["summary"] = self.chg_summary(entry)
                else:
                    child["fileCount"] = _count_children(entry)
                folders.append(child)
            else:
                ext = entry.name.rsplit(".", 1)[1].lower() if "." in entry.name else ""
                files.append(_stat(entry, {"name": entry.name, "path": child_path, "extension": ext}))

        result = {
            "path": relative_path,
            "name": folder.name,
            "fullPath": str(folder),
            "folders": folders,
            "files": files,
            "chgCount": sum(1 for f in folders if f["type"] == "chg"),
            "totalFiles": len(files),
            "isChg": folder.name.startswith("CHG"),
        }
        if result["isChg"]:
            result["chgSummary"] = self.chg_summary(folder)
        return result

    def chg_summary(self, chg_dir: Path) -> dict:
        """Files up to three levels deep, grouped by kind, with the artifact types they imply."""
        categorized = {k: [] for k in ("scripts", "logs", "data", "sql", "config", "other")}
        artifact_types = []
        all_files = []

        for file in sorted(chg_dir.rglob("*")):
            rel = file.relative_to(chg_dir)
            if len(rel.parts) > SUMMARY_DEPTH or not file.is_file():
                continue
            rel_name = rel.as_posix()
            all_files.append(_stat(file, {"name": rel_name}))

            parent = file.parent.name.lower()
            for label, marker in ARTIFACT_MARKERS.items():
                if (parent == marker or marker in rel_name.lower()) and label not in artifact_types:
                    artifact_types.append(label)

            categorized[_category(file.name)].append(rel_name)

        return {
            "chgNumber": chg_dir.name,
            "artifactTypes": artifact_types,
            "fileCount": len(all_files),
            "files": all_files,
            "categorized": categorized,
            "hasDeployScripts": any("deploy" in f["name"].lower() for f in all_files),
            "hasRollbackScripts": any("rollback" in f["name"].lower() for f in all_files),
        }

    def read_file(self, relative_path):
        path = self._resolve(relative_path)
        if not path.exists():
            raise NotFoundError(f"No such file: {relative_path}")
        if not path.is_file():
            raise BadRequestError(f"Not a regular file: {relative_path}")

        size = path.stat().st_size
        with open(path, "rb") as f:
            data = f.read(MAX_FILE_BYTES)
        return {
            "path": relative_path,
            "name": path.name,
            "size": size,
            "truncated": size > MAX_FILE_BYTES,
            "content": data.decode("utf-8", errors="replace"),
        }
