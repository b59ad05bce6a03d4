from managers import ConnectionRegistry


class AppState:
    def __init__(self, image_folder, initial_random=True):
        self.image_folder = image_folder
        self.initial_random = initial_random
        self.connections = ConnectionRegistry()
        self.live_updates = False
        self.change_feed = None
