"""
Top-K selection over classifier score vectors
"""


def top3(scores):
    """
    Indices of the three highest scores, strictly descending.

    Single pass with three running slots instead of a full sort. Comparisons
    are strict, so on exact ties the earliest index keeps its place. Vectors
    shorter than three return every index in natural order.
    """
    n = len(scores)
    if n < 3:
        return list(range(n))

    best1, best2, best3 = 0, 1, 2

    # Order the first three
    if scores[best2] > scores[best1]:
        best1, best2 = best2, best1
    if scores[best3] > scores[best1]:
        best1, best2, best3 = best3, best1, best2
    elif scores[best3] > scores[best2]:
        best2, best3 = best3, best2

    for i in range(3, n):
        current = scores[i]
        if current > scores[best1]:
            best1, best2, best3 = i, best1, best2
        elif current > scores[best2]:
            best2, best3 = i, best2
        elif current > scores[best3]:
            best3 = i

    return [best1, best2, best3]
