"""
Google Meet and Google sign-in DOM selectors.

This module centralizes the UI selectors used for:
- Pre-join screen (device prompt, camera/mic toggles, guest name, join)
- Lobby / admission detection
- In-meeting liveness and meeting-end checks
- Google account sign-in

Note: Google updates these UIs frequently, so selectors may need
periodic maintenance.
"""

# =============================================================================
# MEET SELECTORS
# =============================================================================

MEET_SELECTORS = {
    # -------------------------------------------------------------------------
    # Pre-join Screen
    # -------------------------------------------------------------------------

    # Camera toggle while the camera is on
    "camera_off": [
        'button[aria-label*="Turn off camera"]',
        'button[aria-label*="camera is on"]',
        'button[data-is-muted="false"][aria-label*="camera"]',
        '[data-tooltip*="Turn off camera"]',
        'button[jsname="BOHaEe"]',
    ],

    # Microphone toggle while the mic is on
    "mic_off": [
        'button[aria-label*="Turn off microphone"]',
        'button[aria-label*="microphone is on"]',
        'button[data-is-muted="false"][aria-label*="microphone"]',
        '[data-tooltip*="Turn off microphone"]',
    ],

    # Guest name input
    "name_input": [
        'input[placeholder="Your name"]',
        'input[placeholder="Enter your name"]',
        'input[aria-label="Your name"]',
        'input[aria-label="Enter your name"]',
    ],

    # Join button
    "join_button": [
        'button[jsname="Qx7uuf"]',
        '[aria-label*="Join"]',
        '[data-tooltip*="Join"]',
        'button[data-promo-anchor-id="join"]',
        'div[role="button"][aria-label*="Join"]',
    ],

    # -------------------------------------------------------------------------
    # Lobby / Admission
    # -------------------------------------------------------------------------

    "waiting_lobby": [
        'text="Asking to be admitted"',
        'text="Asking to join..."',
        'text="You\'ll join the call when someone lets you in"',
    ],

    "entry_denied": [
        'text="You can\'t join this call"',
        'text="Someone in the call denied your request to join"',
        'text="Your request to join was declined"',
        'text="You\'ve been removed from the meeting"',
    ],

    # -------------------------------------------------------------------------
    # In-meeting Indicators
    # -------------------------------------------------------------------------

    "in_meeting": [
        'button[aria-label*="Leave call"]',
        '[jsname="CQylAd"]',
        '[data-meeting-title]',
        '[aria-label*="participants"]',
        '[data-participant-id]',
        '[data-allocation-index]',
    ],

    "meeting_ended": [
        'text="You left the call"',
        'text="Return to home screen"',
        'text="The call has ended"',
    ],
}

# Role-named buttons tried before the CSS selectors
DISMISS_DEVICE_PROMPT_BUTTONS = ["Continue without microphone and camera"]
JOIN_BUTTON_NAMES = ["Ask to join", "Join now", "Join"]
JOIN_TEXT_KEYWORDS = ["join"]

# Pre-join keyboard toggles
CAMERA_SHORTCUT = "Control+e"
MIC_SHORTCUT = "Control+d"

SIGN_IN_PROMPT_TEXT = "Sign in to join"


# =============================================================================
# GOOGLE SIGN-IN SELECTORS
# =============================================================================

SIGNIN_SELECTORS = {
    "email_input": [
        'input[type="email"]',
        'input[name="identifier"]',
    ],

    "password_input": [
        'input[type="password"]',
        'input[name="Passwd"]',
    ],

    "next_button": [
        '#identifierNext',
        '#passwordNext',
        'button[type="submit"]',
        '[jsname="LgbsSe"]',
        'button:has-text("Next")',
        '[aria-label*="Next"]',
    ],

    # Account avatar shown on Google pages once signed in
    "account_avatar": [
        '[data-ogsr-up]',
        'a[aria-label*="Google Account"]',
    ],

    "wrong_password": [
        'text="Wrong password"',
        'text="Couldn\'t find your Google Account"',
    ],

    "verification_challenge": [
        'text="Verify it\'s you"',
        'text="2-Step Verification"',
        'text="Check your phone"',
        'text="Confirm it\'s you"',
    ],
}

NEXT_TEXT_KEYWORDS = ["next", "weiter", "continue"]

# URL fragments that mean "still on a sign-in page"
SIGNIN_PAGE_URL_MARKERS = [
    "signin/identifier",
    "signin/v2/identifier",
    "signin/v3/identifier",
    "ServiceLogin",
    "accounts.google.com/AccountChooser",
]

# URL fragments that mean "signed in"
AUTHENTICATED_URL_MARKERS = [
    "mail.google.com",
    "myaccount.google.com",
    "accounts.google.com/signin/continue",
    "accounts.google.com/b/0/ManageAccount",
]

CHALLENGE_URL_MARKERS = [
    "/challenge/",
    "signin/v2/challenge",
    "/deniedsigninrejected",
]


def get_selectors_for(element_type: str) -> list:
    """
    Get list of selectors for a specific element type.

    Args:
        element_type: Key from MEET_SELECTORS or SIGNIN_SELECTORS

    Returns:
        List of CSS/text selectors to try
    """
    return MEET_SELECTORS.get(element_type) or SIGNIN_SELECTORS.get(element_type, [])
