GREETING = "Hello! I'm your AI assistant. How can I help you today?"

CONNECTION_FAILURE = (
    "I apologize, but I'm having trouble connecting to the AI service. "
    "Please try again."
)

SERVER_DEGRADED = "Warning: Server might not be functioning properly."

SERVER_UNREACHABLE = (
    "Warning: Cannot connect to the server. "
    "Please make sure the backend is running."
)

ERROR_MESSAGES = {
    "NETWORK": "Network error. Please check your connection.",
    "FILE_SIZE": "File size exceeds the maximum limit.",
    "FILE_TYPE": "File type not supported.",
    "SETTINGS_IMPORT": "Invalid settings file format.",
    "VOICE_UNAVAILABLE": "Voice input is not available on this device.",
    "GENERAL": "An error occurred. Please try again.",
}


def attachment_label(filename: str) -> str:
    return f"[File Attached: {filename}]"


def attachment_prompt(filename: str) -> str:
    return (
        f"The user has attached a file named {filename}. "
        "Please acknowledge this."
    )
