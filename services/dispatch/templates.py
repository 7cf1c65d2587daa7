from typing import Dict


# In-code templates; key format: "{message_type}.{channel}.{locale}"
TEMPLATES: Dict[str, str] = {
    "sos.sms.en": (
        "EMERGENCY ALERT! I need immediate help! "
        "My location: {latitude}, {longitude}. {signature}"
    ),
    "verification.sms.en": "Your SafeWords verification code: {code}",
}

DEFAULT_LOCALE = "en"


def get_template(message_type: str, channel: str, locale: str = DEFAULT_LOCALE) -> str:
    key = f"{message_type}.{channel}.{locale}"
    if key not in TEMPLATES and locale != DEFAULT_LOCALE:
        key = f"{message_type}.{channel}.{DEFAULT_LOCALE}"
    return TEMPLATES.get(key, "")


def render(template: str, **variables) -> str:
    message = template
    for key, value in variables.items():
        message = message.replace(f"{{{key}}}", str(value))
    return message
