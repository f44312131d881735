"""BriefGate: gated design-brief and image generation service."""
