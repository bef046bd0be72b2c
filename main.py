"""PySide6 entrypoint: launches the Mockup Studio window from mockup_studio.main.

Forces the Fusion style so the stage renders the same on every platform.
"""

import sys

from PySide6.QtWidgets import QApplication

try:
    from mockup_studio.main import MainWindow
except Exception as exc:
    # Provide a clear error if imports fail due to PYTHONPATH issues
    raise RuntimeError("Failed to import mockup_studio. Ensure project root is on PYTHONPATH.") from exc


def main() -> int:
    app = QApplication(sys.argv)
    app.setStyle("Fusion")
    window = MainWindow()
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
