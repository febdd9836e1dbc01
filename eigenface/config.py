import cv2

# Candidate fonts for label rendering (macOS/Windows/Linux). Labels are people's
# names, so fonts with full Latin Extended coverage (Polish, Czech, ...) go first.
FONT_LIST = [
    # macOS
    "/System/Library/Fonts/Supplemental/Arial Unicode.ttf",
    "/Library/Fonts/Arial Unicode.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    # Windows (backslashes escaped)
    "C:\\Windows\\Fonts\\segoeui.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
    "C:\\Windows\\Fonts\\arialuni.ttf",
    # Linux
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
]

# Corpus layout: a directory of "<label> (<index>).jpg" files plus a
# ";"-separated metadata file.
DEFAULT_FACES_DIR = "faces"
DEFAULT_INFO_FILE = "faces/info.txt"

# Normalized training face: width x height, single channel.
FACE_SIZE = (92, 112)

# Source images are scaled to this width before detection and display.
DISPLAY_WIDTH = 500

DEFAULT_CASCADE_PATH = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"

UNKNOWN_LABEL = ""
