"""Interactive flows behind the agm main menu."""
