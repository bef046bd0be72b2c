# config.py
"""
Application configuration constants for Mockup Studio
"""

# Frame store defaults
MAX_FRAMES = 4
DEFAULT_DEVICE_TYPE = "iphone"
HEADLINE_MAX_CHARS = 40
SUBTITLE_MAX_CHARS = 80

# Auto canvas padding around the device silhouette (logical pixels)
CANVAS_PADDING_X = 92
CANVAS_PADDING_TOP = 320  # dedicated marketing text zone
CANVAS_PADDING_BOTTOM = 80
DESKTOP_EXTRA_WIDTH = 80

# Cut preset geometry
OVERLAP_FRACTION = 0.12
HERO_CENTER_RATIO = 1.4
HERO_SIDE_RATIO = 0.85

# Decode settings
MAX_CACHE_SIZE = 24
CACHE_CLEANUP_THRESHOLD = 0.8  # Cleanup when cache reaches 80% of max size
SUPPORTED_IMAGE_FORMATS = ['png', 'jpg', 'jpeg', 'bmp', 'webp', 'gif', 'tiff']
MAX_IMAGE_DIMENSION = 6000       # Larger screenshots are downscaled on decode
DECODE_WORKERS = 2

# Renderer colours
BACKGROUND_COLOR = (26, 26, 46, 255)
DEVICE_BODY_COLOR = (26, 26, 28, 255)
DEVICE_BORDER_COLOR = (42, 42, 44, 255)
SCREEN_PLACEHOLDER_COLOR = (10, 10, 10, 255)
GUIDE_COLOR = (99, 102, 241, 255)
GUIDE_WIDTH = 2
SELECTION_COLOR = (129, 140, 248, 255)
SELECTION_WIDTH = 4
DEVICE_BODY_RADIUS_EXTRA = 4

# Display
MAX_DISPLAY_HEIGHT = 650
MIN_DISPLAY_SCALE = 0.05

# Export
EXPORT_PIXEL_SCALE = 1.0
EXPORT_SLICE_YIELD_SECONDS = 0.02
EXPORT_TIMESTAMP_FORMAT = "%d%m%y%H%M"
EXPORT_INCLUDE_FULL_STRIP = False
EXPORT_FULL_STRIP_ENTRY = "_full.png"
EXPORT_PNG_COMPRESS_LEVEL = 6
EXPORT_DIR_ENV = "MOCKUP_STUDIO_EXPORT_DIR"

# Logging
LOG_FILE_NAME = "mockup_studio.log"
LOG_MAX_BYTES = 1_048_576
LOG_BACKUP_COUNT = 5

# Shortcuts
EXPORT_SHORTCUT = "Ctrl+E"
OPEN_SHORTCUT = "Ctrl+O"
