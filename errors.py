"""Exceptions raised by the slideshow server components"""


class SlideshowError(Exception):
    pass


class DirectoryAccessError(SlideshowError):
    """The image folder does not exist or cannot be read"""

    def __init__(self, directory, reason=None):
        self.directory = directory
        self.reason = reason
        message = f"Cannot list images in {directory}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class WatcherFailure(SlideshowError):
    """The directory watcher cannot observe its folder"""


class ChannelSendFailure(SlideshowError):
    """Sending a payload to one viewer connection failed"""

    def __init__(self, connection_id, reason=None):
        self.connection_id = connection_id
        self.reason = reason
        super().__init__(f"Send to connection {connection_id} failed: {reason}")
