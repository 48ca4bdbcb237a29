"""
search.py — fuzzy search trên name / issuer của account.

Quy tắc:
- Query khớp khi các ký tự của nó xuất hiện theo đúng thứ tự (không cần liền nhau)
  trong text, không phân biệt hoa/thường.
- Trong mọi cách ghép, giữ cách có điểm cao nhất: cộng điểm cho mỗi ký tự khớp,
  thưởng thêm khi khớp liên tiếp hoặc khớp ở đầu một từ, trừ 1 điểm cho mỗi ký tự
  bị bỏ qua giữa hai lần khớp.
- Query trùng đúng name luôn đứng đầu.
"""

from typing import List, Optional, Sequence

from hotpot.core.otp_core import Account

SCORE_MATCH = 16
BONUS_BOUNDARY = 8
BONUS_FIRST_CHAR = 8
BONUS_CONSECUTIVE = 12
PENALTY_GAP = 1
BONUS_EXACT = 1000

# các mode mà ô nhập liệu đóng vai trò query lọc
FILTERING_MODES = ("search", "add")

_NEG = float("-inf")


def _fold(text: str) -> str:
    """
    Hạ chữ thường từng ký tự, giữ nguyên độ dài chuỗi.

    Một số ký tự khi lower() sinh ra nhiều ký tự (vd. "İ" -> "i̇"); các ký tự đó
    được giữ nguyên để vị trí trong chuỗi đã hạ khớp với chuỗi gốc.
    """
    folded = []
    for char in text:
        lowered = char.lower()
        folded.append(lowered if len(lowered) == 1 else char)
    return "".join(folded)


def _is_boundary(text: str, index: int) -> bool:
    if index == 0:
        return True
    prev, cur = text[index - 1], text[index]
    if not prev.isalnum():
        return True
    # camelCase: "gitHub" -> "H" bắt đầu một từ mới
    return prev.islower() and cur.isupper()


def fuzzy_score(query: str, text: str) -> Optional[int]:
    """Chấm điểm `query` trên `text`; None nếu query không phải subsequence của text."""
    if not query:
        return 0
    q = _fold(query)
    t = _fold(text)
    n, m = len(q), len(t)
    if n > m:
        return None

    bonus = [
        (BONUS_BOUNDARY if _is_boundary(text, j) else 0) + (BONUS_FIRST_CHAR if j == 0 else 0)
        for j in range(m)
    ]

    prev = [_NEG] * m
    for j in range(m):
        if t[j] == q[0]:
            prev[j] = SCORE_MATCH + bonus[j]

    for i in range(1, n):
        cur = [_NEG] * m
        # best_gap = max(prev[k] + PENALTY_GAP * k) với k <= j - 2;
        # khoảng trống từ k tới j bị trừ PENALTY_GAP * (j - k - 1)
        best_gap = _NEG
        for j in range(i, m):
            if j >= 2 and prev[j - 2] > _NEG:
                best_gap = max(best_gap, prev[j - 2] + PENALTY_GAP * (j - 2))
            if t[j] != q[i]:
                continue
            candidates = []
            if prev[j - 1] > _NEG:
                candidates.append(prev[j - 1] + BONUS_CONSECUTIVE)
            if best_gap > _NEG:
                candidates.append(best_gap - PENALTY_GAP * (j - 1))
            if candidates:
                cur[j] = max(candidates) + SCORE_MATCH + bonus[j]
        prev = cur

    best = max(prev)
    if best == _NEG:
        return None
    # khớp subsequence thì điểm luôn dương, dù rải rác đến đâu
    return max(int(best), 1)


def score_account(query: str, account: Account) -> Optional[int]:
    """Điểm cao nhất của `query` trên name, hoặc trên chuỗi "issuer name" nếu có issuer."""
    scores = [fuzzy_score(query, account.name)]
    if account.issuer:
        scores.append(fuzzy_score(query, f"{account.issuer} {account.name}"))
    matched = [s for s in scores if s is not None]
    if not matched:
        return None
    score = max(matched)
    if _fold(query) == _fold(account.name):
        score += BONUS_EXACT
    return score


def filter_accounts(accounts: Sequence[Account], query: str, mode: str = "list") -> List[Account]:
    """
    Trả về danh sách account hiển thị cho `query` trong `mode`.

    - Ngoài các mode lọc (search, add) hoặc query rỗng: trả về toàn bộ, giữ thứ tự Storage.
    - Ngược lại: chỉ các account khớp, điểm cao trước; bằng điểm thì giữ thứ tự Storage.
    """
    if mode not in FILTERING_MODES or not query:
        return list(accounts)

    scored = []
    for position, account in enumerate(accounts):
        score = score_account(query, account)
        if score is not None and score > 0:
            scored.append((-score, position, account))
    scored.sort(key=lambda item: (item[0], item[1]))
    return [account for _, _, account in scored]


def clamp_selection(selection: Optional[int], length: int) -> Optional[int]:
    """Kẹp selection vào [0, length); None khi danh sách rỗng."""
    if length <= 0:
        return None
    if selection is None:
        return 0
    return min(max(selection, 0), length - 1)
