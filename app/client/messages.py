from app.config import settings

CLIENT_MESSAGES: dict[str, dict[str, str]] = {
    "ro": {
        "sending": "Se trimit datele...",
        "location_required": "Selectează o zonă pe hartă înainte de a continua.",
        "timed_out": "Timpul de trimitere a expirat. Încearcă din nou.",
        "network_error": "Eroare de rețea: Imposibil de a contacta serverul (verifică conexiunea sau CORS).",
        "unexpected_response": "Eroare la trimitere sau conexiune.",
        "submit_failed": "Eroare la trimitere: {status}",
        "handoff_missing": "Nu am găsit datele contului. Reîncearcă înregistrarea.",
        "handoff_failed": "Autentificarea a eșuat: {reason}",
    },
    "en": {
        "sending": "Sending your details...",
        "location_required": "Pick an area on the map before continuing.",
        "timed_out": "The request timed out. Please try again.",
        "network_error": "Network error: the server could not be reached (check the connection or CORS).",
        "unexpected_response": "Submission or connection error.",
        "submit_failed": "Submission error: {status}",
        "handoff_missing": "Account details not found. Please register again.",
        "handoff_failed": "Sign-in failed: {reason}",
    },
}


def client_message(key: str, locale: str | None = None, **params) -> str:
    catalog = CLIENT_MESSAGES.get(locale or settings.CLIENT_LOCALE) or CLIENT_MESSAGES["en"]
    text = catalog.get(key) or CLIENT_MESSAGES["en"][key]
    return text.format(**params) if params else text
