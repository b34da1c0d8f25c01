from __future__ import annotations

import sys
from PySide6 import QtWidgets
from .logging_utils import configure_logging
from .service import EditorService
from .settings import load_app_config
from .gui.main_window import MainWindow


def main():
    configure_logging()
    app = QtWidgets.QApplication(sys.argv)
    service = EditorService(config=load_app_config())
    w = MainWindow(service)
    w.show()
    sys.exit(app.exec())


if __name__ == '__main__':
    main()
