"""BriefGate application package."""
