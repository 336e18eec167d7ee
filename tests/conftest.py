import pytest


@pytest.fixture
def write_rs(tmp_path):
    """Write a Rust source file under tmp_path and return its path as str."""
    def _write(name, text):
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        return str(path)
    return _write
