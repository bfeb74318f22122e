# ptm_errors.py

# Everything that can go wrong while reading a PTM file ends up as one of
# these. None of them leave a half decoded image behind, the caller either
# gets a full DecodedPTM or an exception.


class PtmFormatError(ValueError):
    """Base class for PTM decoding failures.

    Attributes:
        stage: Which part of the decode failed (`"header"` or `"pixels"`).
        offset: Byte offset into the file where the problem was found, if known.
    """
    def __init__(self, message: str, stage: str = "header", offset: int | None = None):
        self.stage = stage
        self.offset = offset
        if offset is not None:
            message = f"{message} ({stage}, byte offset {offset})"
        else:
            message = f"{message} ({stage})"
        super().__init__(message)


class UnsupportedVersionError(PtmFormatError):
    """The first header line is not a `PTM_1.x` version string."""


class UnsupportedFormatError(PtmFormatError):
    """The second header line is not one of the known PTM_FORMAT_* names."""


class MalformedHeaderError(PtmFormatError):
    """Width, height, scale or bias could not be parsed."""


class TruncatedError(PtmFormatError):
    """The file ends before all the data the header promised."""
    def __init__(self, message: str, stage: str = "pixels", offset: int | None = None,
                 required: int | None = None, available: int | None = None):
        self.required = required
        self.available = available
        if required is not None and available is not None:
            message = f"{message}: need {required} bytes, got {available}"
        super().__init__(message, stage=stage, offset=offset)


class FormatNotImplementedError(PtmFormatError, NotImplementedError):
    """A known format we do not decode (JPEG variants, LUM)."""
