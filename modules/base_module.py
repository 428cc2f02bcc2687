from PySide6.QtCore import QObject


class BaseModule(QObject):
    def reset(self) -> None:
        raise NotImplementedError
