import pytest

from gxutil.paths import dir_exists, exists, file_exists


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "path_test.py"
    path.write_text("content")
    return path


def test_file_is_found_by_exists(sample_file):
    assert exists(sample_file) is True


def test_file_is_not_a_directory(sample_file):
    with pytest.raises(NotADirectoryError):
        dir_exists(sample_file)


def test_file_exists_for_file(sample_file):
    assert file_exists(sample_file) is True


def test_missing_file_exists_is_false(tmp_path):
    assert exists(tmp_path / "path_test1.py") is False


def test_missing_file_dir_exists_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        dir_exists(tmp_path / "path_test1.py")


def test_missing_file_file_exists_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        file_exists(tmp_path / "path_test1.py")


def test_directory_exists(tmp_path):
    assert exists(tmp_path) is True
    assert dir_exists(tmp_path) is True


def test_directory_is_not_a_file(tmp_path):
    with pytest.raises(IsADirectoryError):
        file_exists(tmp_path)


def test_missing_directory(tmp_path):
    missing = tmp_path / "go"
    assert exists(missing) is False
    with pytest.raises(FileNotFoundError):
        dir_exists(missing)
    with pytest.raises(FileNotFoundError):
        file_exists(missing)


def test_accepts_string_paths(sample_file):
    assert exists(str(sample_file)) is True
    assert file_exists(str(sample_file)) is True