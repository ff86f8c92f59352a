"""Party membership and chat services for worldserver."""
