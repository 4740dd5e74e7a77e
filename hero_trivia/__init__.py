"""Hero Trivia: a timed comic-book trivia game engine with a Discord front end."""
