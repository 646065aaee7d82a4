# -*- coding: utf-8 -*-
"""Error taxonomy shared by the calibration tool and the matrix reader."""

EXIT_CONFIGURATION_ERROR = 1
EXIT_SOURCE_UNAVAILABLE = 2
EXIT_READ_FAILURE = 1


class CalibrationError(Exception):
    pass


class ConfigurationError(CalibrationError):
    """Missing or invalid board dimensions, bad numeric option, unknown flag."""


class SourceUnavailable(CalibrationError):
    """Neither a capture handle nor an image list could be opened."""


class PersistenceFailure(CalibrationError):
    """The result document could not be opened for writing."""


class ReadFailure(CalibrationError):
    pass


class FileNotReadable(ReadFailure):
    pass


class MissingField(ReadFailure):
    def __init__(self, path, field):
        super().__init__(f"'{field}' not found in {path}")
        self.path = path
        self.field = field
