"""Exceptions raised while decoding shares and writing Parquet output."""


class ShareDecodeError(ValueError):
    """A single record could not be decoded. The stream can continue."""


class UnsupportedVersionError(ShareDecodeError):
    """Version tag is missing or not the supported one."""

    def __init__(self, version=None):
        self.version = version
        if version is None:
            super().__init__("share record has no version tag")
        else:
            super().__init__(f"unsupported share version: 0x{version:08x}")


class MalformedPayloadError(ShareDecodeError):
    """Structured payload failed to parse."""


class EmptyInputError(MalformedPayloadError):
    """Zero-length or missing buffer passed to decode."""


class SerializationError(ValueError):
    """A share could not be serialized to its wire form."""


class WriterClosedError(RuntimeError):
    """Append on a writer that was closed or failed."""


class OutputWriteError(OSError):
    """Writing to the Parquet output failed. The conversion must stop."""
