"""
Constants
Centralised storage for Lighthouse categories, emulation profiles and Chrome flags.
"""
ALL_CATEGORIES = ["performance", "accessibility", "best-practices", "seo"]

# Fields a Lighthouse result must carry before it is persisted
REQUIRED_REPORT_FIELDS = ["finalUrl", "fetchTime", "categories", "audits"]

FORM_FACTOR_MOBILE = "mobile"

MOBILE_SCREEN_EMULATION = {
    "mobile": True,
    "width": 375,
    "height": 667,
    "deviceScaleFactor": 2,
    "disabled": False,
}

# Headless/server friendly: no sandbox, no GPU, and every background
# subsystem that would add latency or noise to the measurements turned off.
CHROME_FLAGS = [
    "--headless=new",
    "--disable-gpu",
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--ignore-certificate-errors",
    "--allow-insecure-localhost",
    "--disable-extensions",
    "--disable-component-extensions-with-background-pages",
    "--disable-component-update",
    "--disable-default-apps",
    "--mute-audio",
    "--no-default-browser-check",
    "--no-first-run",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-client-side-phishing-detection",
    "--disable-hang-monitor",
    "--disable-ipc-flooding-protection",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-renderer-backgrounding",
    "--disable-sync",
    "--force-color-profile=srgb",
    "--metrics-recording-only",
    "--password-store=basic",
]

# Executable names tried on PATH when CHROME_PATH is not set
CHROME_CANDIDATES = [
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
]
CHROME_MACOS_PATH = "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome"
