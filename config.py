"""
Climbing Pose Coach Configuration
=================================

Central configuration file for all pipeline parameters.
"""

# =============================================================================
# Camera Settings
# =============================================================================
CAMERA_ID = 0
CAMERA_WIDTH = 1280
CAMERA_HEIGHT = 720
MIRROR_VIEW = False  # Flip horizontally for a "mirror" display (scores are unaffected)

# =============================================================================
# MediaPipe Pose Landmarker Settings
# =============================================================================
POSE_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/pose_landmarker/"
    "pose_landmarker_lite/float16/latest/pose_landmarker_lite.task"
)
POSE_MODEL_PATH = "models/pose_landmarker_lite.task"
NUM_POSES = 1
MIN_POSE_DETECTION_CONFIDENCE = 0.5
MIN_POSE_PRESENCE_CONFIDENCE = 0.5
MIN_TRACKING_CONFIDENCE = 0.5
N_LANDMARKS = 33

# =============================================================================
# Landmark Indices (BlazePose 33-point topology)
# =============================================================================
LEFT_SHOULDER = 11
RIGHT_SHOULDER = 12
LEFT_WRIST = 15
RIGHT_WRIST = 16
LEFT_HIP = 23
RIGHT_HIP = 24
LEFT_ANKLE = 27
RIGHT_ANKLE = 28

REQUIRED_LANDMARKS = (
    LEFT_SHOULDER, RIGHT_SHOULDER,
    LEFT_WRIST, RIGHT_WRIST,
    LEFT_HIP, RIGHT_HIP,
    LEFT_ANKLE, RIGHT_ANKLE,
)

# =============================================================================
# Scoring Settings
# =============================================================================
# Empirical heuristics, keep exact values
STABILITY_GAIN = 180.0        # per unit of hip/feet horizontal offset
COORDINATION_GAIN = 260.0     # per unit of |hand spread - foot spread|
HIP_EXTENSION_GAIN = 240.0    # per unit of deviation from target
HIP_TO_SHOULDER_TARGET = 0.2  # normalized vertical hip-to-shoulder distance

SCORE_MIN = 0
SCORE_MAX = 100
ADVICE_THRESHOLD = 65.0       # raw score below this triggers a tip

# =============================================================================
# Language / UI Text
# =============================================================================
LANGUAGE = "en"  # Options: "en", "zh-TW"
SUPPORTED_LANGUAGES = ("en", "zh-TW")

TIPS = {
    "en": {
        "stability": "Center of mass is drifting. Keep your hips centered over your base of support.",
        "coordination": "Hands and feet are out of sync. Practice 'feet first, then pull' rhythm drills.",
        "hip_extension": "Hip extension is limited. Turn your hip in before reaching on high steps instead of pulling with your arms.",
        "good": "Good rhythm and balance. Try routes with smaller holds to sharpen precision.",
    },
    "zh-TW": {
        "stability": "重心偏移較明顯，嘗試將髖部保持在雙腳支撐區域中央。",
        "coordination": "手腳切換不同步，建議先做『腳先到位、手再發力』的節奏練習。",
        "hip_extension": "髖部延展不足，嘗試在踩高點時先轉髖再伸手，減少手臂硬拉。",
        "good": "節奏與重心表現良好，可嘗試更小支點路線提升精準度。",
    },
}

STATUS_MESSAGES = {
    "en": {
        "idle": "Press start to begin.",
        "loading_model": "Loading model...",
        "analyzing": "Analyzing: face the camera and simulate climbing moves.",
        "failed": "Unable to start the camera or model. Check camera permissions and network.",
        "stopped": "Analysis stopped.",
    },
    "zh-TW": {
        "idle": "按下開始以啟動分析。",
        "loading_model": "模型載入中...",
        "analyzing": "分析中：請面向鏡頭模擬攀爬動作。",
        "failed": "無法啟動攝影機或模型，請確認攝影機權限與網路。",
        "stopped": "分析已停止。",
    },
}

SCORE_LABELS = {
    "en": {
        "stability": "Stability",
        "coordination": "Coordination",
        "hip_extension": "Hip extension",
    },
    "zh-TW": {
        "stability": "穩定度",
        "coordination": "協調性",
        "hip_extension": "髖部延展",
    },
}

# =============================================================================
# Display Settings
# =============================================================================
WINDOW_NAME = "Climbing Pose Coach - Real-time Analysis"
FONT_SCALE = 0.7
SCREENSHOT_DIR = "screenshots"
DEMO_OUTPUT_DIR = "demo_output"

# Overlay style
LANDMARK_RADIUS = 3
CONNECTOR_THICKNESS = 2

# Colors (BGR format)
COLOR_LANDMARK = (255, 216, 90)    # #5ad8ff
COLOR_CONNECTOR = (191, 255, 115)  # #73ffbf
COLOR_GREEN = (0, 255, 0)
COLOR_ORANGE = (0, 165, 255)
COLOR_RED = (0, 0, 255)
COLOR_WHITE = (255, 255, 255)
COLOR_BLACK = (0, 0, 0)

# =============================================================================
# Logging
# =============================================================================
LOG_LEVEL = "INFO"
LOG_FILE = None
