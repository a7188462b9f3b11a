"""Built-in debates loaded into a fresh SQLite topic store."""

from .topics import Message, Speaker, TopicDraft

_T = Speaker.TUTOR
_S = Speaker.STUDENT


def _script(*turns):
    return [Message(id=str(i), speaker=speaker, text=text) for i, (speaker, text) in enumerate(turns, 1)]


SEED_TOPICS = [
    TopicDraft(
        title="Bubble Sort: Efficiency vs Simplicity",
        description=(
            "Discussing whether Bubble Sort has any practical use cases in modern "
            "development given its O(n²) complexity."
        ),
        code='''def bubble_sort(arr):
    n = len(arr)
    while True:
        swapped = False
        for i in range(n - 1):
            if arr[i] > arr[i + 1]:
                # Swap elements
                arr[i], arr[i + 1] = arr[i + 1], arr[i]
                swapped = True
        if not swapped:
            break
    return arr''',
        script=_script(
            (_T, "Let's examine Bubble Sort in Python. It's often the first algorithm taught, "
                 "but do you see why it's rarely used in production?"),
            (_S, "I see the nested structure with the while and for loops... that looks like "
                 "O(n²) time complexity. Is it ever faster than Merge Sort?"),
            (_T, "Almost never for large datasets. However, it has one redeeming quality: it "
                 "detects if a list is *already* sorted efficiently, in O(n) time."),
            (_S, "Wait, look at line 4 `swapped = False`. If the list is sorted, the loop runs "
                 "once, `swapped` stays False, and it breaks? That's actually clever."),
            (_T, "Precisely! It's also stable and uses O(1) extra memory. But for unsorted large "
                 "lists, please use the built-in `sort()` or `sorted()`."),
        ),
    ),
    TopicDraft(
        title="Quick Sort: The Pivot Problem",
        description=(
            "Analyzing how the choice of pivot affects the performance of Quick Sort, "
            "specifically focusing on worst-case scenarios."
        ),
        code='''def quick_sort(arr):
    if len(arr) <= 1:
        return arr

    # Naive pivot selection
    pivot = arr[-1]
    left = []
    right = []

    for x in arr[:-1]:
        if x < pivot:
            left.append(x)
        else:
            right.append(x)

    return quick_sort(left) + [pivot] + quick_sort(right)''',
        script=_script(
            (_T, "This Python implementation of Quick Sort uses the last element as a pivot. "
                 "Can you spot the danger in this approach?"),
            (_S, "If I pass in a list that's already sorted... like `[1, 2, 3, 4]`, the pivot "
                 "will always be the max value."),
            (_T, "Correct. And if the pivot is always the maximum (or minimum), the partition "
                 "becomes unbalanced. One side has n-1 elements, the other has 0."),
            (_S, "So it degrades to O(n²) just like Bubble Sort? That sounds terrible for a "
                 "'Quick' sort."),
            (_T, "It is. That's why robust implementations use 'median-of-three' or random "
                 "pivots to ensure O(n log n) on average."),
        ),
    ),
    TopicDraft(
        title="Merge Sort: The Space Trade-off",
        description="Debating the memory implications of Merge Sort compared to in-place algorithms.",
        code='''def merge_sort(arr):
    if len(arr) <= 1:
        return arr

    mid = len(arr) // 2
    left = merge_sort(arr[:mid])
    right = merge_sort(arr[mid:])

    return merge(left, right)

def merge(left, right):
    result = []
    i = j = 0

    while i < len(left) and j < len(right):
        if left[i] < right[j]:
            result.append(left[i])
            i += 1
        else:
            result.append(right[j])
            j += 1

    result.extend(left[i:])
    result.extend(right[j:])
    return result''',
        script=_script(
            (_T, "Merge Sort is reliable. It guarantees O(n log n) time complexity. But look at "
                 "the `result` list in the merge function."),
            (_S, "We are creating a new list for every merge step? That seems like a lot of "
                 "memory allocation."),
            (_T, "It is. Merge Sort requires O(n) auxiliary space. In environments with limited "
                 "memory, this can be a dealbreaker."),
            (_S, "So if I'm sorting 1GB of data, I need another 1GB of RAM just to run the sort? "
                 "That explains why Quick Sort is often preferred for in-memory sorting."),
            (_T, "Exactly. Stability and consistent speed vs. memory efficiency. It's all about "
                 "trade-offs."),
        ),
    ),
]
