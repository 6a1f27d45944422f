import os
import pytest

# Configure headless mode for CI/CD
os.environ["QT_QPA_PLATFORM"] = "offscreen"
os.environ["XDG_RUNTIME_DIR"] = "/tmp/runtime-runner"
os.environ.setdefault("NUMBA_THREADING_LAYER", "workqueue")


@pytest.fixture(scope="session", autouse=True)
def qapp():
    from PyQt6.QtCore import QCoreApplication
    import sys

    app = QCoreApplication.instance()
    if not app:
        app = QCoreApplication(sys.argv)
    yield app
