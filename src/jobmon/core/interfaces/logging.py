from abc import ABC, abstractmethod

class LoggingPort(ABC):
    @abstractmethod
    def info(self, msg: str, *args, **kwargs):
        pass

    @abstractmethod
    def warning(self, msg: str, *args, **kwargs):
        pass

    @abstractmethod
    def error(self, msg: str, *args, **kwargs):
        pass

    @abstractmethod
    def debug(self, msg: str, *args, **kwargs):
        pass

    @abstractmethod
    def log(self, level: int, msg: str, *args, **kwargs):
        pass
