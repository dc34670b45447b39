import pytest

from core.errors import BadRequestError, ConfigurationError, NotFoundError
from services import deployment_folders
from services.deployment_folders import DeploymentFolderBrowser


@pytest.fixture
def share(tmp_path):
    month = tmp_path / "2026" / "03-March"
    chg = month / "CHG123"
    (chg / "ddl").mkdir(parents=True)
    (chg / "ddl" / "deploy_tables.sql").write_text("CREATE TABLE t (id int)")
    (chg / "rollback.ps1").write_text("Write-Host rollback")
    (chg / "web" / "a" / "b").mkdir(parents=True)
    (chg / "web" / "a" / "b" / "too_deep.txt").write_text("x")
    (chg / "notes.log").write_text("ok")
    (month / "release-03-05").mkdir()
    (month / "misc").mkdir()
    (tmp_path / "2025").mkdir()
    return DeploymentFolderBrowser(str(tmp_path))


def test_years_and_months_newest_first(share):
    assert share.list_years() == ["2026", "2025"]
    assert share.list_months("2026") == ["03-March"]


def test_releases_are_typed(share):
    releases = {r["name"]: r for r in share.list_releases("2026", "03-March")}
    assert releases["CHG123"]["type"] == "chg"
    assert releases["release-03-05"]["type"] == "release"
    assert releases["misc"]["type"] == "other"
    assert releases["CHG123"]["path"] == "2026/03-March/CHG123"
    assert releases["CHG123"]["childCount"] == 4


def test_month_contents_summarise_chg_folders(share):
    contents = share.folder_contents("2026/03-March")
    assert contents["chgCount"] == 1
    assert not contents["isChg"]
    chg = next(f for f in contents["folders"] if f["name"] == "CHG123")
    summary = chg["summary"]
    assert summary["chgNumber"] == "CHG123"
    assert summary["artifactTypes"] == ["DDL"]
    assert summary["hasDeployScripts"]
    assert summary["hasRollbackScripts"]
    assert summary["categorized"]["sql"] == ["ddl/deploy_tables.sql"]
    assert summary["categorized"]["scripts"] == ["rollback.ps1"]
    assert "web/a/b/too_deep.txt" not in [f["name"] for f in summary["files"]]


def test_chg_folder_contents(share):
    contents = share.folder_contents("2026/03-March/CHG123/")
    assert contents["isChg"]
    assert contents["path"] == "2026/03-March/CHG123"
    assert [f["name"] for f in contents["files"]] == ["notes.log", "rollback.ps1"]
    assert contents["files"][0]["extension"] == "log"
    assert contents["chgSummary"]["fileCount"] == 3


def test_read_file_truncates_large_files(share, monkeypatch):
    monkeypatch.setattr(deployment_folders, "MAX_FILE_BYTES", 6)
    result = share.read_file("2026/03-March/CHG123/ddl/deploy_tables.sql")
    assert result["content"] == "CREATE"
    assert result["truncated"]
    assert result["size"] == len("CREATE TABLE t (id int)")


def test_bad_paths(share):
    with pytest.raises(BadRequestError):
        share.folder_contents("2026/../../etc")
    with pytest.raises(NotFoundError):
        share.folder_contents("2024")
    with pytest.raises(BadRequestError):
        share.folder_contents("2026/03-March/CHG123/notes.log")
    with pytest.raises(BadRequestError):
        share.read_file("2026/03-March")
    with pytest.raises(NotFoundError):
        share.read_file("2026/none.txt")


def test_unconfigured_root():
    with pytest.raises(ConfigurationError):
        DeploymentFolderBrowser("").list_years()
