#!/usr/bin/env python3
"""
Tests for the slideshow HTTP routes and the push channel
"""

import unittest
import os
import sys
import re
import json
import tempfile
import shutil
from unittest.mock import Mock

# Add current directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from errors import WatcherFailure
from slideshow_server import client_config, create_app, start_live_updates
from watcher import ChangeEvent, ChangeKind


def write_file(folder, name, data=b'\x00'):
    with open(os.path.join(folder, name), 'wb') as f:
        f.write(data)


def embedded_json(html, element_id):
    match = re.search(
        r'<script id="%s" type="application/json">(.*?)</script>' % element_id,
        html,
        re.DOTALL
    )
    return json.loads(match.group(1))


class FakeWatcher:
    def __init__(self, events=None, failure=None):
        self._events = events or []
        self._failure = failure

    def events(self):
        if self._failure:
            raise self._failure
        return iter(self._events)


class ServerTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.app, self.socketio = create_app(self.temp_dir, initial_random=False)
        self.app.config['TESTING'] = True
        self.app_state = self.app.extensions['slideshow']
        self.client = self.app.test_client()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)


class TestPage(ServerTestCase):
    """Test the slideshow page"""

    def test_page_embeds_images_and_config(self):
        """The page carries the image list and the client configuration"""
        write_file(self.temp_dir, 'a.jpg')
        write_file(self.temp_dir, 'notes.txt')

        response = self.client.get('/')
        html = response.get_data(as_text=True)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(embedded_json(html, 'slideshow-images'), ['a.jpg'])
        self.assertEqual(embedded_json(html, 'slideshow-config'), {
            'randomMode': False,
            'intervalMs': 15000,
            'fadeMs': 1000,
            'imagesEvent': 'images'
        })
        self.assertIn('src="/images/a.jpg"', html)

    def test_page_loads_rotation_module(self):
        """The page loads the rotation module before the page script"""
        html = self.client.get('/').get_data(as_text=True)

        self.assertLess(html.index('/static/rotation.js'), html.index('/static/slideshow.js'))
        response = self.client.get('/static/rotation.js')
        self.assertEqual(response.status_code, 200)
        self.assertIn(b'createRotation', response.data)
        response.close()

    def test_page_with_empty_folder(self):
        """An empty folder still renders, with nothing to show"""
        response = self.client.get('/')
        html = response.get_data(as_text=True)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(embedded_json(html, 'slideshow-images'), [])
        self.assertIn('class="empty"', html)

    def test_page_with_missing_folder(self):
        """An unreadable folder degrades to an empty list"""
        shutil.rmtree(self.temp_dir)
        try:
            response = self.client.get('/')
        finally:
            os.makedirs(self.temp_dir)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(embedded_json(response.get_data(as_text=True), 'slideshow-images'), [])

    def test_filenames_are_escaped(self):
        """Filenames cannot break out of the embedded payload"""
        write_file(self.temp_dir, '<script>&.png')

        html = self.client.get('/').get_data(as_text=True)

        self.assertEqual(embedded_json(html, 'slideshow-images'), ['<script>&.png'])

    def test_client_config_random_default(self):
        self.assertTrue(client_config(True)['randomMode'])
        self.assertFalse(client_config(False)['randomMode'])


class TestImageFiles(ServerTestCase):
    """Test serving raw image files"""

    def test_serves_file_bytes(self):
        write_file(self.temp_dir, 'photo.png', b'\x89PNG data')

        response = self.client.get('/images/photo.png')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, b'\x89PNG data')
        self.assertEqual(response.mimetype, 'image/png')
        response.close()

    def test_content_type_by_extension(self):
        write_file(self.temp_dir, 'photo.jpg')

        response = self.client.get('/images/photo.jpg')

        self.assertEqual(response.mimetype, 'image/jpeg')
        response.close()

    def test_missing_file_is_404(self):
        response = self.client.get('/images/missing.jpg')

        self.assertEqual(response.status_code, 404)

    def test_no_escape_from_folder(self):
        """Paths leaving the image folder are not served"""
        response = self.client.get('/images/../secret.txt')

        self.assertEqual(response.status_code, 404)


class TestImagesApi(ServerTestCase):
    """Test the image list endpoint"""

    def test_lists_images(self):
        write_file(self.temp_dir, 'a.gif')

        data = self.client.get('/api/images').get_json()

        self.assertEqual(data, {'images': ['a.gif'], 'live_updates': False})


class TestPushChannel(ServerTestCase):
    """Test Socket.IO connections and broadcasts"""

    def test_connect_registers_viewer(self):
        """Connecting registers the viewer without pushing anything"""
        viewer = self.socketio.test_client(self.app)

        self.assertTrue(viewer.is_connected())
        self.assertEqual(len(self.app_state.connections), 1)
        self.assertEqual(viewer.get_received(), [])
        viewer.disconnect()

    def test_disconnect_unregisters_viewer(self):
        viewer = self.socketio.test_client(self.app)

        viewer.disconnect()

        self.assertEqual(len(self.app_state.connections), 0)

    def test_broadcast_reaches_every_viewer(self):
        """All viewers receive the same serialized list"""
        viewers = [self.socketio.test_client(self.app) for _ in range(3)]

        delivered = self.app_state.connections.broadcast(['a.jpg', 'b.webp'])

        self.assertEqual(delivered, 3)
        for viewer in viewers:
            received = viewer.get_received()
            self.assertEqual(len(received), 1)
            self.assertEqual(received[0]['name'], 'images')
            self.assertEqual(received[0]['args'], ['["a.jpg", "b.webp"]'])
            viewer.disconnect()

    def test_closed_viewer_does_not_block_others(self):
        """A viewer gone before the broadcast gets nothing and others still do"""
        staying = self.socketio.test_client(self.app)
        leaving = self.socketio.test_client(self.app)
        leaving.disconnect()

        delivered = self.app_state.connections.broadcast(['a.jpg'])

        self.assertEqual(delivered, 1)
        self.assertEqual(staying.get_received()[0]['args'], ['["a.jpg"]'])
        staying.disconnect()


class TestLiveUpdates(ServerTestCase):
    """Test wiring the watcher to the push channel"""

    def test_changes_are_pushed(self):
        """Folder changes reach connected viewers as fresh lists"""
        viewer = self.socketio.test_client(self.app)
        write_file(self.temp_dir, 'new.jpg')
        watcher = FakeWatcher([ChangeEvent(ChangeKind.ADDED, os.path.join(self.temp_dir, 'new.jpg'))])
        socketio = Mock()
        socketio.start_background_task.side_effect = lambda task: task()

        feed = start_live_updates(socketio, self.app_state, watcher=watcher)

        self.assertIs(self.app_state.change_feed, feed)
        received = viewer.get_received()
        self.assertEqual(received[0]['args'], ['["new.jpg"]'])
        viewer.disconnect()

    def test_watcher_failure_keeps_serving(self):
        """A failing watcher disables live updates but pages still render"""
        socketio = Mock()
        socketio.start_background_task.side_effect = lambda task: task()

        start_live_updates(socketio, self.app_state, watcher=FakeWatcher(failure=WatcherFailure('gone')))

        self.assertFalse(self.app_state.live_updates)
        self.assertEqual(self.client.get('/').status_code, 200)

    def test_feed_runs_in_background_task(self):
        socketio = Mock()

        feed = start_live_updates(socketio, self.app_state, watcher=FakeWatcher())

        socketio.start_background_task.assert_called_once_with(feed.run)


if __name__ == '__main__':
    unittest.main()
