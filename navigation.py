from table_errors import InvalidDirectionError

DIRECTIONS = ("up", "down", "left", "right")
OPPOSITE = {"up": "down", "down": "up", "left": "right", "right": "left"}


def check_direction(direction: str) -> str:
    if direction not in DIRECTIONS:
        raise InvalidDirectionError(
            f"invalid direction {direction!r} (use up, down, left or right)"
        )
    return direction


class NavigationController:
    """Single-cell moves over data lines with wraparound.

    Left/right run row-major: past the last column continues at column 1 of
    the next line, past the last line wraps to line 1. Up/down run
    column-major the same way: past the last line continues at line 1 of the
    next column.
    """

    def __init__(self, nlines: int, ncols: int):
        self.nlines = nlines
        self.ncols = ncols

    @property
    def total_cells(self) -> int:
        return self.nlines * self.ncols

    def move_right(self, line, col):
        col += 1
        if col > self.ncols:
            col = 1
            line = line + 1 if line < self.nlines else 1
        return line, col

    def move_left(self, line, col):
        col -= 1
        if col < 1:
            col = self.ncols
            line = line - 1 if line > 1 else self.nlines
        return line, col

    def move_down(self, line, col):
        line += 1
        if line > self.nlines:
            line = 1
            col = col + 1 if col < self.ncols else 1
        return line, col

    def move_up(self, line, col):
        line -= 1
        if line < 1:
            line = self.nlines
            col = col - 1 if col > 1 else self.ncols
        return line, col

    def move(self, line, col, direction):
        check_direction(direction)
        return getattr(self, f"move_{direction}")(line, col)
