"""
Reply templates shared across handlers.
"""

MAIN_MENU = """*MAIN MENU*

1️⃣ Get a Quote
2️⃣ Learn About Our Products
3️⃣ Policy Management
4️⃣ Claims & Support
5️⃣ FAQs

_Reply with a number or type what you need._"""

WELCOME = f"""👋 Hello! I'm *CHUKS*, your personal insurance assistant.

I can help you get affordable insurance, manage your policies, make claims, or learn about our products. How can I help you today?

{MAIN_MENU}"""

QUOTE_CATEGORIES = """🎯 *Get a Quote*

What type of insurance would you like a quote for?

1️⃣ Health Insurance
2️⃣ Auto / Car Insurance
3️⃣ Device Insurance
4️⃣ Life Insurance
5️⃣ Property Insurance
6️⃣ Salary Insurance
7️⃣ Credit Insurance
8️⃣ Travel Insurance (Coming Soon)

_Reply with a number or type the insurance name._"""

LEARN_PRODUCTS = """📚 *Learn About Our Products*

1️⃣ Health Insurance
2️⃣ Auto Insurance
3️⃣ Life Insurance
4️⃣ Device Insurance
5️⃣ Property Insurance
6️⃣ Salary Insurance
7️⃣ Travel Insurance

_Select a product to learn more._"""

CLAIMS_MENU = """🛟 *Claims & Support*

1️⃣ Make a Claim
2️⃣ Track Claim Status
3️⃣ Speak to an Agent

_How can I help you?_"""

FAQ_MENU = """❓ *Frequently Asked Questions*

1️⃣ Health Insurance FAQs
2️⃣ Auto Insurance FAQs
3️⃣ Life Insurance FAQs
4️⃣ Device Insurance FAQs
5️⃣ Payment & Billing FAQs
6️⃣ Claims FAQs
7️⃣ General Insurance Questions

_Which category interests you?_"""

POLICY_LOOKUP_PROMPT = """🔍 *Policy Management*

Please provide your:
• Policy number, OR
• Registered phone number

I'll look up your policy details."""

TIMEOUT_NOTICE = (
    "⏰ *Session Timed Out*\n\n"
    "You were inactive for a while, so your session was cleared for your security.\n\n"
    "Type MENU to start again."
)

CANNOT_GO_BACK = "Cannot go back from this step. Type MENU to return to main menu."

UNKNOWN_STATE = "I didn't understand that. Let me show you the main menu.\n\n" + MAIN_MENU

HANDLER_ERROR = "Sorry, something went wrong. Let me show you the main menu.\n\n" + MAIN_MENU

DEFERRED_FAILURE = (
    "😔 Sorry, we couldn't complete your request right now. "
    "Your session has been reset.\n\nType MENU to start again."
)

STILL_PROCESSING = (
    "⏳ *Still processing...*\n\n"
    "Please wait, your request is being processed.\n\n"
    "_Do not send messages until complete._"
)

DEFAULT_PROMPT = "Please continue with your registration."


def loading(text: str) -> str:
    """Interim reply shown while a deferred task runs."""
    return f"🔄 *{text}*\n\nPlease wait..."


def retry(hint: str, prompt: str) -> str:
    """Corrective prompt for the validation-retry loop."""
    return f"⚠️ {hint}\n\n{prompt}"
