def is_valid_length_range(min_len: int, max_len: int) -> bool:
    return (isinstance(min_len, int) and isinstance(max_len, int)
            and 0 <= min_len <= max_len)

def is_valid_count(count: int, limit: int = 1000) -> bool:
    return isinstance(count, int) and 1 <= count <= limit
