"""
Levenshtein edit distance, used to spot typosquatted sender domains.

Case-sensitive: callers lowercase domains before comparing.
"""


def distance(a, b):
    """
    Minimum number of single-character insertions, deletions or
    substitutions that turn `a` into `b`.

    Builds the full (len(a)+1) x (len(b)+1) table; domains are short so
    O(len(a) * len(b)) time and space is fine.
    """
    rows, cols = len(a) + 1, len(b) + 1
    dp = [[0] * cols for _ in range(rows)]

    for i in range(rows):
        dp[i][0] = i
    for j in range(cols):
        dp[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            if a[i - 1] == b[j - 1]:
                dp[i][j] = dp[i - 1][j - 1]
            else:
                dp[i][j] = 1 + min(dp[i - 1][j], dp[i][j - 1], dp[i - 1][j - 1])

    return dp[-1][-1]
