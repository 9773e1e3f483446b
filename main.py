import sys
from typing import List, TextIO

import collectors
from functional import Action, Comparator, TriConcat, compare, parse_int
from lazy import Pipeline
from models import Person
from utils import TaskRunner, setup_logging


class Speaker:
    def __init__(self, x: int):
        self.x = x

    def speak(self, out: TextIO):
        print(f"X={self.x}", file=out)


PEOPLE: List[Person] = [
    Person(name="Ross", age=29),
    Person(name="Dave", age=30),
    Person(name="Alan", age=50),
    Person(name="Chris", age=29),
    Person(name="Ross", age=30),
]


def demo_capabilities(out: TextIO):
    # any function with the right shape satisfies a single-method capability
    lambda_compare: Comparator = lambda x, y: compare(x, y)
    cat: TriConcat = lambda s, x, z: s + x + z
    say_what: Action = lambda: print("WHAT", file=out)

    print(f"Int compare:\t{lambda_compare(5, 10)}", file=out)
    print(cat("hey", "there", "mate"), file=out)
    say_what()


def demo_runnable(out: TextIO):
    with TaskRunner(max_workers=1) as runner:
        runner.run(lambda: print("runnable!", file=out))
        runner.submit(lambda: print("runnable on a worker!", file=out)).result()


def demo_find_first(out: TextIO):
    Pipeline.of("a1", "b2", "c3").find_first().if_present(lambda s: print(s, file=out))


def demo_filter_map_sorted(out: TextIO):
    (
        Pipeline(["A1", "C3", "B1", "C1", "C2", "C0"])
        .filter(lambda s: s.startswith("C"))
        .map(str.upper)
        .sorted()
        .for_each(lambda s: print(s, file=out))
    )


def demo_ranges(out: TextIO):
    print("Int pipelines:", file=out)
    Pipeline.range_closed(1, 5).for_each(lambda i: print(i, file=out))
    # unbounded source, bounded by limit()
    Pipeline.iterate(0, lambda i: i + 2).limit(3).for_each(lambda i: print(i, file=out))


def demo_runnables(out: TextIO):
    runnables = Pipeline.range_closed(1, 3).map(lambda i: lambda: print(f"RUN: {i}", file=out))
    runnables.for_each(lambda run: run())

    speakers = Pipeline.range_closed(1, 5).map(Speaker)
    speakers.for_each(lambda sx: sx.speak(out))


def demo_average(out: TextIO):
    print("array of ints pipeline:", file=out)
    (
        Pipeline([1, 2, 3, 4, 5])
        .map(lambda n: 2 * (n + 1))
        .average()
        .if_present(lambda avg: print(avg, file=out))
    )


def demo_parse_with_fallback(out: TextIO):
    print("String to int pipeline:", file=out)
    Pipeline.of("1", "2", "3", "hey").map(parse_int).for_each(lambda n: print(n, file=out))


def demo_interleaving(out: TextIO):
    # each element runs through filter and for_each before the next one starts
    def only_a2(s):
        print(f"filter: {s}", file=out)
        return s == "a2"

    (
        Pipeline.of("d2", "a2", "b1", "b3", "c")
        .filter(only_a2)
        .for_each(lambda s: print(f"forEach: {s}", file=out))
    )


def demo_filter_before_map(out: TextIO):
    sentence = "hello my name is ross"
    (
        Pipeline(sentence.split(" "))
        .filter(lambda s: s == "my")
        .map(lambda s: s.replace("m", s + "X"))
        .for_each(lambda s: print(s, file=out))
    )


def demo_people(out: TextIO, people: List[Person] = PEOPLE):
    rosses = Pipeline(people).filter(lambda p: p.name == "Ross").to_list()
    for p in rosses:
        print(f"{p.name} is {p.age}", file=out)

    grouped = Pipeline(people).group_by(lambda p: p.age)
    for age, group in grouped.items():
        print(f"age {age}: {[p.name for p in group]}", file=out)

    phrase = (
        Pipeline(people)
        .filter(lambda p: p.age > 29)
        .map(lambda p: p.name)
        .joining(" and ", "", " are over 29")
    )
    print(phrase, file=out)

    names = Pipeline(people).map(lambda p: p.name).to_set()
    print(f"unique names: {sorted(names)}", file=out)

    average_age = Pipeline(people).collect(collectors.averaging(lambda p: p.age))
    print(f"avg age: {average_age}", file=out)

    names_by_age = Pipeline(people).to_map(
        lambda p: p.age,
        lambda p: p.name,
        lambda name1, name2: name1 + "," + name2,
    )
    print(names_by_age, file=out)


DEMOS = [
    demo_capabilities,
    demo_runnable,
    demo_find_first,
    demo_filter_map_sorted,
    demo_ranges,
    demo_runnables,
    demo_average,
    demo_parse_with_fallback,
    demo_interleaving,
    demo_filter_before_map,
    demo_people,
]


def run_demos(out: TextIO = sys.stdout):
    for demo in DEMOS:
        print(f"\n--- Demo: {demo.__name__[len('demo_'):].replace('_', ' ')} ---", file=out)
        demo(out)


if __name__ == "__main__":
    setup_logging()
    run_demos()
