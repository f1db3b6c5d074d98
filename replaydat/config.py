class TranscodeConfig:
    def __init__(
        self,
        relative_ticks: bool = False,
        sort_lines: bool = False,
        compressed: bool = False,
        debug: bool = False,
    ):
        self.relative_ticks = relative_ticks
        self.sort_lines = sort_lines
        self.compressed = compressed
        self.debug = debug

    @classmethod
    def from_args(cls, args=None):
        config = cls()
        if args is None:
            return config
        config.relative_ticks = args.relative_ticks
        config.sort_lines = args.sort
        config.compressed = args.compressed
        config.debug = args.verbose
        return config
