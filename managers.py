import json
import os
import re
import threading

from config import IMAGE_EXTENSIONS, IMAGES_EVENT
from errors import ChannelSendFailure, DirectoryAccessError, WatcherFailure
from logger_config import get_logger

# Module logger
logger = get_logger('managers')

IMAGE_PATTERN = re.compile(r'\.(%s)$' % '|'.join(IMAGE_EXTENSIONS), re.IGNORECASE)


def is_image_file(filename):
    return IMAGE_PATTERN.search(filename) is not None


def list_images(directory):
    """Return the image filenames of a folder, in listing order"""
    try:
        entries = os.listdir(directory)
    except OSError as e:
        raise DirectoryAccessError(directory, e.strerror or str(e)) from e
    return [f for f in entries if is_image_file(f)]


def serialize_images(images):
    return json.dumps(list(images))


class ImageLister:
    def __init__(self, directory):
        self.directory = directory

    def list(self):
        return list_images(self.directory)

    def safe_list(self):
        """List images, degrading to an empty list when the folder is unreadable"""
        try:
            return self.list()
        except DirectoryAccessError as e:
            logger.warning(f"{e}; serving an empty image list")
            return []


class SocketIOConnection:
    """One viewer's Socket.IO session"""

    def __init__(self, socketio, sid, event=IMAGES_EVENT):
        self.socketio = socketio
        self.id = sid
        self.event = event

    def send(self, payload):
        try:
            self.socketio.emit(self.event, payload, to=self.id)
        except Exception as e:
            raise ChannelSendFailure(self.id, e) from e

    def __repr__(self):
        return f"<SocketIOConnection {self.id}>"


class ConnectionRegistry:
    def __init__(self):
        self._connections = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._connections)

    def __contains__(self, conn_id):
        with self._lock:
            return conn_id in self._connections

    def on_connect(self, conn):
        with self._lock:
            self._connections[conn.id] = conn
            count = len(self._connections)
        logger.info(f"Client connected: {conn.id} ({count} open)")

    def on_disconnect(self, conn_id):
        with self._lock:
            removed = self._connections.pop(conn_id, None)
            count = len(self._connections)
        if removed is not None:
            logger.info(f"Client disconnected: {conn_id} ({count} open)")

    def broadcast(self, images):
        """
        Send the serialized image list to every open connection.

        A failing connection is dropped and the others still receive the
        payload. Nothing is raised to the caller.

        Returns:
            Number of connections the payload was delivered to
        """
        payload = serialize_images(images)
        with self._lock:
            targets = list(self._connections.values())

        delivered = 0
        for conn in targets:
            try:
                conn.send(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping connection {conn.id}: {e}")
                self.on_disconnect(conn.id)

        logger.debug(f"Broadcast {len(images)} images to {delivered} connection(s)")
        return delivered


class ChangeFeed:
    """Push a fresh image list to every viewer on each folder change"""

    def __init__(self, watcher, lister, registry, app_state=None):
        self.watcher = watcher
        self.lister = lister
        self.registry = registry
        self.app_state = app_state

    def _set_live(self, live):
        if self.app_state is not None:
            self.app_state.live_updates = live

    def run(self):
        self._set_live(True)
        try:
            for event in self.watcher.events():
                logger.info(f"File {event.kind.value}: {event.path}")
                images = self.lister.safe_list()
                self.registry.broadcast(images)
        except WatcherFailure as e:
            logger.error(f"Live updates disabled: {e}")
        finally:
            self._set_live(False)
