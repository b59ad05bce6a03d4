# Slideshow server settings

import os

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


HOST = os.getenv('SLIDESHOW_HOST', '0.0.0.0')
PORT = int(os.getenv('SLIDESHOW_PORT', '3000'))

# Folder containing the images, next to the server by default
IMAGE_FOLDER = os.getenv(
    'SLIDESHOW_IMAGE_FOLDER',
    os.path.join(os.path.dirname(os.path.abspath(__file__)), 'images')
)

# True for random image display, False for sequential order
INITIAL_RANDOM = _env_flag('SLIDESHOW_INITIAL_RANDOM', True)

LOG_DIR = os.getenv('SLIDESHOW_LOG_DIR', 'logs')

# Timing and the accepted formats are fixed; only the deployment settings
# above can come from the environment
ROTATION_INTERVAL_MS = 15000
FADE_DURATION_MS = 1000

IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'gif', 'webp')

# Socket.IO event carrying the serialized image list
IMAGES_EVENT = 'images'
