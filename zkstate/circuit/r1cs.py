"""
R1CS 제약 시스템 (Rank-1 Constraint System)
===========================================

상태 전이 회로의 산술화(arithmetization). 모든 계산은 신호(signal)와
A·B = C 형태의 제약으로 표현된다.

**신호(배선) 배치**:
  | 인덱스          | 의미                         |
  |-----------------|------------------------------|
  | 0               | 상수 1 (ONE)                 |
  | 1 .. l          | 공개 입력 (public input)     |
  | l+1 ..          | 비공개 입력, 중간 신호       |

  공개 입력은 반드시 다른 신호보다 먼저 선언해야 한다.

**선형 결합 (LinearCombination)**:
  Σ coeffᵢ · signalᵢ. 상수는 ONE 신호의 계수로 표현된다.
  선형 결합끼리의 덧셈/뺄셈, 스칼라 곱은 제약 없이 계산된다.
  곱셈만 제약 (A·B = C) 과 새 중간 신호를 필요로 한다.

**힌트 (witness hint)**:
  중간 신호 값은 선언 순서대로 힌트 함수로 계산된다 (circom의 `<--`).
  힌트는 값만 채울 뿐이며, 값의 정당성은 오직 제약으로만 보장된다.

사용 예시 (x³ + x + 5 = out):
    >>> cs = ConstraintSystem("cubic")
    >>> out = cs.public_input("out")
    >>> x = cs.private_input("x")
    >>> x2 = cs.mul(x, x, "x2")
    >>> x3 = cs.mul(x2, x, "x3")
    >>> cs.enforce_equal(x3 + x + 5, out, "result")
    >>> w = cs.solve({"out": 35, "x": 3})
    >>> cs.is_satisfied(w)  # True
"""

import hashlib

from zkstate.field import FR, CURVE_ORDER, is_canonical, to_fr


ONE = 0


# ─────────────────────────────────────────────────────────────────────
# 선형 결합
# ─────────────────────────────────────────────────────────────────────

class LinearCombination:
    """신호 인덱스 → 계수 매핑으로 표현된 선형 결합.

    계수는 [0, p) 정수로 저장하고, 평가 결과는 FR로 반환한다.
    """

    __slots__ = ("terms",)

    def __init__(self, terms=None):
        self.terms = {}
        if terms:
            for wire, coeff in terms.items():
                c = int(coeff) % CURVE_ORDER
                if c:
                    self.terms[wire] = c

    @classmethod
    def constant(cls, value):
        return cls({ONE: value})

    @classmethod
    def signal(cls, wire):
        return cls({wire: 1})

    @staticmethod
    def lift(value):
        """int, FR, LinearCombination을 LinearCombination으로 변환."""
        if isinstance(value, LinearCombination):
            return value
        return LinearCombination.constant(value)

    def is_constant(self):
        return all(w == ONE for w in self.terms)

    def constant_value(self):
        return FR(self.terms.get(ONE, 0))

    def wires(self):
        return sorted(self.terms)

    def evaluate(self, witness):
        """증인 벡터에서 선형 결합 값을 계산한다."""
        acc = 0
        for wire, coeff in self.terms.items():
            acc += coeff * witness[wire].n
        return FR(acc)

    def __add__(self, other):
        other = LinearCombination.lift(other)
        terms = dict(self.terms)
        for wire, coeff in other.terms.items():
            terms[wire] = terms.get(wire, 0) + coeff
        return LinearCombination(terms)

    __radd__ = __add__

    def __neg__(self):
        return LinearCombination({w: -c for w, c in self.terms.items()})

    def __sub__(self, other):
        return self + (-LinearCombination.lift(other))

    def __rsub__(self, other):
        return LinearCombination.lift(other) - self

    def __mul__(self, scalar):
        if isinstance(scalar, LinearCombination):
            if scalar.is_constant():
                scalar = scalar.constant_value()
            elif self.is_constant():
                return scalar * self.constant_value()
            else:
                raise TypeError("두 신호의 곱은 ConstraintSystem.mul로 제약해야 합니다")
        s = int(scalar)
        return LinearCombination({w: c * s for w, c in self.terms.items()})

    __rmul__ = __mul__

    def __repr__(self):
        parts = [f"{c}*s{w}" if w else str(c) for w, c in sorted(self.terms.items())]
        return "LC(" + " + ".join(parts) + ")" if parts else "LC(0)"


# ─────────────────────────────────────────────────────────────────────
# 제약 및 입력 명세
# ─────────────────────────────────────────────────────────────────────

class Constraint:
    """R1CS 제약 A·B = C."""

    __slots__ = ("a", "b", "c", "label")

    def __init__(self, a, b, c, label):
        self.a = LinearCombination.lift(a)
        self.b = LinearCombination.lift(b)
        self.c = LinearCombination.lift(c)
        self.label = label

    def check(self, witness):
        """제약이 만족되는지 확인한다."""
        return self.a.evaluate(witness) * self.b.evaluate(witness) == self.c.evaluate(witness)


class InputSpec:
    """입력 신호 묶음. size가 None이면 스칼라 입력."""

    def __init__(self, name, wires, size, public):
        self.name = name
        self.wires = wires
        self.size = size
        self.public = public


# ─────────────────────────────────────────────────────────────────────
# 제약 시스템
# ─────────────────────────────────────────────────────────────────────

class ConstraintSystem:
    """R1CS 빌더 및 증인 계산기.

    컴파일이 끝나면 seal()로 고정되며, 이후에는 solve/검사만 가능하다.
    여러 스레드가 같은 인스턴스를 읽기 전용으로 공유할 수 있다.

    속성:
        name: 회로 이름
        signal_names: 신호 이름 리스트 (인덱스 0 = "one")
        public_wires: 공개 입력 신호 인덱스 (선언 순서)
        constraints: Constraint 리스트
    """

    def __init__(self, name):
        self.name = name
        self.signal_names = ["one"]
        self.public_wires = []
        self.inputs = []
        self.constraints = []
        self._hints = []
        self._sealed = False

    # ── 신호 선언 ──

    def _check_open(self):
        if self._sealed:
            raise RuntimeError(f"회로 {self.name}는 이미 고정되었습니다")

    def _new_signal(self, name):
        self._check_open()
        self.signal_names.append(name)
        return len(self.signal_names) - 1

    def _declare_input(self, name, size, public):
        if any(spec.name == name for spec in self.inputs):
            raise ValueError(f"중복된 입력 이름: {name}")
        if size is None:
            wires = [self._new_signal(name)]
        else:
            wires = [self._new_signal(f"{name}[{i}]") for i in range(size)]
        self.inputs.append(InputSpec(name, wires, size, public))
        lcs = [LinearCombination.signal(w) for w in wires]
        return lcs[0] if size is None else lcs

    def public_input(self, name, size=None):
        """공개 입력을 선언한다. 다른 모든 신호보다 먼저 선언해야 한다."""
        if len(self.signal_names) != 1 + len(self.public_wires):
            raise RuntimeError("공개 입력은 비공개 신호보다 먼저 선언해야 합니다")
        result = self._declare_input(name, size, public=True)
        self.public_wires = list(range(1, len(self.signal_names)))
        return result

    def private_input(self, name, size=None):
        """비공개 입력을 선언한다. size를 주면 배열 입력."""
        return self._declare_input(name, size, public=False)

    def intermediate(self, name, hint):
        """힌트로 값이 계산되는 중간 신호를 선언한다.

        Args:
            name: 신호 이름
            hint: witness(list[FR]) → 값 (int 또는 FR)
        """
        wire = self._new_signal(name)
        self._hints.append(((wire,), hint))
        return LinearCombination.signal(wire)

    def intermediates(self, names, hint):
        """하나의 힌트가 여러 신호 값을 동시에 계산하는 경우."""
        wires = tuple(self._new_signal(n) for n in names)
        self._hints.append((wires, hint))
        return [LinearCombination.signal(w) for w in wires]

    # ── 제약 ──

    def enforce(self, a, b, c, label):
        """제약 a·b = c 를 추가한다."""
        self._check_open()
        self.constraints.append(Constraint(a, b, c, label))

    def enforce_equal(self, x, y, label):
        """선형 제약 x = y, 즉 (x - y)·1 = 0."""
        diff = LinearCombination.lift(x) - LinearCombination.lift(y)
        self.enforce(diff, LinearCombination.constant(1), LinearCombination(), label)

    def mul(self, a, b, name):
        """곱셈 게이트: out = a·b (새 신호 + 제약 1개)."""
        a = LinearCombination.lift(a)
        b = LinearCombination.lift(b)
        out = self.intermediate(name, lambda w: a.evaluate(w) * b.evaluate(w))
        self.enforce(a, b, out, name)
        return out

    def assign(self, x, name):
        """선형 결합 x를 새 신호로 고정한다 (circom의 `<==`)."""
        x = LinearCombination.lift(x)
        out = self.intermediate(name, x.evaluate)
        self.enforce_equal(out, x, name)
        return out

    def seal(self):
        self._sealed = True
        return self

    # ── 통계 ──

    @property
    def num_signals(self):
        return len(self.signal_names)

    @property
    def num_constraints(self):
        return len(self.constraints)

    @property
    def num_public(self):
        return len(self.public_wires)

    def public_input_names(self):
        return [spec.name for spec in self.inputs if spec.public]

    def private_input_names(self):
        return [spec.name for spec in self.inputs if not spec.public]

    # ── 증인 계산 ──

    def _assign_inputs(self, witness, inputs, public):
        for spec in self.inputs:
            if spec.public != public:
                continue
            if spec.name not in inputs:
                raise ValueError(f"입력 누락: {spec.name}")
            value = inputs[spec.name]
            values = [value] if spec.size is None else list(value)
            if len(values) != len(spec.wires):
                raise ValueError(f"입력 {spec.name}의 길이는 {len(spec.wires)}이어야 합니다")
            for wire, v in zip(spec.wires, values):
                if not is_canonical(v):
                    raise ValueError(f"입력 {spec.name}의 값이 필드 범위를 벗어났습니다: {v!r}")
                witness[wire] = to_fr(v)

    def solve(self, public_inputs, private_inputs=None):
        """입력에서 전체 증인 벡터를 계산한다.

        private_inputs를 생략하면 public_inputs 하나의 딕셔너리에서
        모든 입력을 찾는다. 제약 만족 여부는 검사하지 않는다.

        Returns:
            list[FR]: 신호 인덱스 순서의 증인 벡터

        Raises:
            ValueError: 입력이 누락되었거나, 알 수 없는 입력이 있거나, 범위를 벗어날 때
        """
        if private_inputs is None:
            public_inputs, private_inputs = public_inputs, public_inputs
            known = {spec.name for spec in self.inputs}
            unknown = set(public_inputs) - known
        else:
            unknown = (set(public_inputs) - set(self.public_input_names())) | \
                      (set(private_inputs) - set(self.private_input_names()))
        if unknown:
            raise ValueError(f"알 수 없는 입력: {sorted(unknown)}")

        witness = [None] * self.num_signals
        witness[ONE] = FR(1)
        self._assign_inputs(witness, public_inputs, public=True)
        self._assign_inputs(witness, private_inputs, public=False)
        for wires, hint in self._hints:
            if len(wires) == 1:
                witness[wires[0]] = to_fr(hint(witness))
            else:
                for wire, value in zip(wires, hint(witness)):
                    witness[wire] = to_fr(value)
        return witness

    def unsatisfied(self, witness):
        """만족되지 않는 제약의 라벨 리스트."""
        return [c.label for c in self.constraints if not c.check(witness)]

    def is_satisfied(self, witness):
        return all(c.check(witness) for c in self.constraints)

    def public_signals(self, witness):
        """증인에서 공개 신호 값을 선언 순서대로 추출한다."""
        return [witness[w] for w in self.public_wires]

    def structure_hash(self):
        """제약 구조의 SHA-256 해시 (hex).

        같은 회로를 다시 컴파일하면 같은 해시가 나와야 한다.
        """
        h = hashlib.sha256()
        h.update(self.name.encode())
        h.update(f"|{self.num_signals}|{self.public_wires}|".encode())
        for c in self.constraints:
            for lc in (c.a, c.b, c.c):
                for wire, coeff in sorted(lc.terms.items()):
                    h.update(f"{wire}:{coeff},".encode())
                h.update(b";")
            h.update(b"\n")
        return h.hexdigest()

    def __repr__(self):
        return (f"ConstraintSystem({self.name!r}, signals={self.num_signals}, "
                f"constraints={self.num_constraints}, public={self.num_public})")
