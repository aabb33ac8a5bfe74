"""League XP engine: match lifecycle, MOTM votes, XP settlement and achievements."""
