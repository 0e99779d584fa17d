"""DOM auto-fill core: locate the message box, inject text, press send."""
