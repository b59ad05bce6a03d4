#!/usr/bin/env python3
# Slideshow server - full-screen image slideshow with live folder updates

import os

from flask import Flask, jsonify, render_template, request, send_from_directory
from flask_socketio import SocketIO

from config import (
    FADE_DURATION_MS,
    HOST,
    IMAGE_FOLDER,
    IMAGES_EVENT,
    INITIAL_RANDOM,
    LOG_DIR,
    PORT,
    ROTATION_INTERVAL_MS,
)
from logger_config import get_logger, setup_logger
from managers import ChangeFeed, ImageLister, SocketIOConnection
from state import AppState
from watcher import DirectoryWatcher

logger = get_logger('server')


def client_config(random_mode):
    """Initial settings handed to the page's slideshow module"""
    return {
        'randomMode': bool(random_mode),
        'intervalMs': ROTATION_INTERVAL_MS,
        'fadeMs': FADE_DURATION_MS,
        'imagesEvent': IMAGES_EVENT
    }


def render_slideshow(images, random_mode):
    return render_template(
        'index.html',
        images=images,
        slideshow_config=client_config(random_mode)
    )


def create_app(image_folder=IMAGE_FOLDER, initial_random=INITIAL_RANDOM):
    app = Flask(__name__)
    socketio = SocketIO(app)

    app_state = AppState(image_folder, initial_random)
    lister = ImageLister(image_folder)
    app.extensions['slideshow'] = app_state

    @app.route('/')
    def index():
        images = lister.safe_list()
        logger.info(f"Serving slideshow page with {len(images)} images")
        if not images:
            logger.warning(f"No images found in {image_folder}")
        return render_slideshow(images, app_state.initial_random)

    @app.route('/images/<path:filename>')
    def image_file(filename):
        return send_from_directory(os.path.abspath(app_state.image_folder), filename)

    @app.route('/api/images')
    def api_images():
        return jsonify({
            'images': lister.safe_list(),
            'live_updates': app_state.live_updates
        })

    @socketio.on('connect')
    def handle_connect(auth=None):
        app_state.connections.on_connect(SocketIOConnection(socketio, request.sid))

    @socketio.on('disconnect')
    def handle_disconnect(*args):
        app_state.connections.on_disconnect(request.sid)

    return app, socketio


def start_live_updates(socketio, app_state, watcher=None):
    """Run the change feed for the image folder as a background task"""
    if watcher is None:
        watcher = DirectoryWatcher(app_state.image_folder)
    feed = ChangeFeed(
        watcher,
        ImageLister(app_state.image_folder),
        app_state.connections,
        app_state
    )
    app_state.change_feed = feed
    socketio.start_background_task(feed.run)
    return feed


def main():
    setup_logger(log_dir=LOG_DIR)
    os.makedirs(IMAGE_FOLDER, exist_ok=True)

    app, socketio = create_app()
    start_live_updates(socketio, app.extensions['slideshow'])

    logger.info(f"Server running on http://localhost:{PORT}")
    socketio.run(app, host=HOST, port=PORT, debug=False, use_reloader=False,
                 allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
