"""Dashboard tương tác trên terminal: state machine, renderer và vòng lặp sự kiện curses."""
