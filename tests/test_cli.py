import base64

from app.api import cli


def test_build_reference_inlines_file(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_bytes(b"# Agenda")

    reference = cli.build_reference(str(path))

    assert reference.display_name == "notes.txt"
    assert reference.content_type == "text/plain"
    assert reference.size_bytes == 8
    assert reference.location == "data:text/plain;base64," + base64.b64encode(b"# Agenda").decode("ascii")


def test_type_override(tmp_path):
    path = tmp_path / "data.bin"
    path.write_bytes(b"plain words")

    assert cli.build_reference(str(path), "text/plain").content_type == "text/plain"


def test_extract_only_prints_records(tmp_path, capsys):
    path = tmp_path / "notes.txt"
    path.write_text("Ship the release on Friday.")

    exit_code = cli.main([str(path), "--extract-only"])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "- notes.txt: ok" in out
    assert "Ship the release on Friday." in out


def test_missing_file_exits_early(tmp_path, capsys):
    exit_code = cli.main([str(tmp_path / "nope.txt"), "--extract-only"])

    assert exit_code == 2
    assert "File not found" in capsys.readouterr().err
