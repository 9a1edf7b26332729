import pytest

from lstorage.endpoint import make_volume_dir, parse_endpoint


def test_parse_unix_endpoint():
    assert parse_endpoint("unix://tmp/csi.sock") == ("unix", "tmp/csi.sock")


def test_parse_keeps_original_case_of_scheme():
    assert parse_endpoint("UNIX://var/run/x.sock") == ("UNIX", "var/run/x.sock")


def test_parse_splits_only_once():
    assert parse_endpoint("unix://a://b") == ("unix", "a://b")


@pytest.mark.parametrize("ep", ["unix://", "tcp://127.0.0.1:10000", "", "/tmp/csi.sock"])
def test_parse_rejects_invalid(ep):
    with pytest.raises(ValueError, match="invalid endpoint"):
        parse_endpoint(ep)


def test_make_volume_dir_creates_nested(tmp_path):
    target = tmp_path / "a" / "b" / "c"
    make_volume_dir(target)
    assert target.is_dir()


def test_make_volume_dir_keeps_existing(tmp_path):
    (tmp_path / "keep.txt").write_text("data")
    make_volume_dir(tmp_path)
    assert (tmp_path / "keep.txt").read_text() == "data"


def test_make_volume_dir_accepts_existing_file(tmp_path):
    target = tmp_path / "file"
    target.write_text("x")
    make_volume_dir(target)
    assert target.is_file()