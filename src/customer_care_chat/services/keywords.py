"""Keyword lists used by the intent router.

Matching is case-insensitive substring containment, so entries are lowercase
and short entries also match inside longer words.
"""

SPAM_KEYWORDS = [
    "buy now",
    "click here",
    "free money",
    "make money fast",
    "earn money",
    "lottery",
    "you have won",
    "winner",
    "casino",
    "betting",
    "viagra",
    "crypto giveaway",
    "double your money",
    "limited offer",
    "promo code",
    "subscribe to my",
    "http://",
    "https://",
    "www.",
]

ABUSE_KEYWORDS = [
    "stupid",
    "idiot",
    "useless",
    "nonsense",
    "rubbish",
    "fool",
    "bad",
    "terrible",
    "hate",
    "shut up",
    "damn",
    "crap",
    "dumb",
    "mumu",
    "werey",
    "olodo",
    "ewu",
]

FEEDBACK_KEYWORDS = [
    "status",
    "update",
    "no response",
    "haven't heard",
    "havent heard",
    "have not heard",
    "no feedback",
    "any news",
    "any feedback",
    "follow up",
    "follow-up",
    "still waiting",
    "progress",
]

GRATITUDE_KEYWORDS = [
    "thank you",
    "thanks",
    "thank u",
    "thx",
    "appreciate",
    "grateful",
]

CONTINUE_KEYWORDS = [
    "continue",
    "yes",
    "yeah",
    "related",
    "same",
    "existing",
    "that one",
    "this one",
    "no wahala",
    "na",
    "abi",
    "sha",
    "ehn",
    "oya",
]

NEW_COMPLAINT_KEYWORDS = [
    "new",
    "different",
    "another",
    "no",
    "fresh",
    "separate",
    "start over",
    "something else",
]

COMPLAINT_KEYWORDS = [
    "complaint",
    "issue",
    "problem",
    "concern",
    "help",
    "support",
]

AFFIRMATIVE_KEYWORDS = [
    "yes",
    "yeah",
    "yep",
    "yup",
    "ok",
    "okay",
    "sure",
    "alright",
    "go ahead",
    "of course",
    "definitely",
    "i would like",
]

NEGATIVE_KEYWORDS = [
    "no",
    "nope",
    "nah",
    "not",
    "never",
    "don't",
    "dont",
    "cancel",
]

SUBMIT_KEYWORD = "submit"

# Used to pick a category for complaints assembled from chat.
CATEGORY_KEYWORDS = {
    "payroll": ["salary", "payroll", "payslip", "payment", "deduction", "allowance", "bonus"],
    "hr": ["leave", "human resource", "appraisal", "promotion", "onboarding"],
    "technical": ["login", "password", "error", "crash", "bug", "system", "website"],
    "access": ["access", "permission", "locked out"],
    "equipment": ["laptop", "printer", "equipment", "device"],
    "procurement": ["procurement", "vendor", "purchase order", "supplier"],
    "inventory": ["inventory", "stock"],
    "facilities": ["office", "air condition", "toilet", "facility", "facilities"],
    "security": ["security", "theft", "breach"],
    "training": ["training", "course"],
    "policy": ["policy"],
    "sales": ["sales", "customer order", "invoice"],
}
