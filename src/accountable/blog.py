"""Published blog posts behind ``/blog/:id``."""

from dataclasses import dataclass

from accountable.errors import NotFound


@dataclass(frozen=True, slots=True)
class BlogPost:
    id: int
    title: str
    excerpt: str
    image: str
    read_time: str
    date: str
    body: str


POSTS: tuple[BlogPost, ...] = (
    BlogPost(
        id=1,
        title="The Hawthorne Effect: Why Being Watched Works",
        excerpt=(
            "Studies show that individuals modify an aspect of their behavior in response "
            "to their awareness of being observed. Here's how to harness this for productivity."
        ),
        image="https://images.unsplash.com/photo-1517048676732-d65bc937f952",
        read_time="5 min read",
        date="Oct 12, 2023",
        body=(
            "The Hawthorne Effect is a type of reactivity in which people change their "
            "behavior because they know they are being observed. Remote work removed that "
            "natural accountability. Scheduling a call with a real human recreates the "
            "observation event, and knowing someone will check in is enough to shift focus."
        ),
    ),
    BlogPost(
        id=2,
        title="Body Doubling: The ADHD Secret Weapon",
        excerpt=(
            "Body doubling involves doing a task in the presence of another person. "
            "The other person acts as an anchor for your attention."
        ),
        image="https://images.unsplash.com/photo-1522202176988-66273c2fd55f",
        read_time="4 min read",
        date="Sep 28, 2023",
        body=(
            "A body double is another person present while you work. They do not help "
            "and need not talk; their presence anchors attention and lowers the cost of "
            "starting. Verification calls act as the finish line of a body doubling "
            "session with a hard stop."
        ),
    ),
    BlogPost(
        id=3,
        title="The Social Contract of Getting Things Done",
        excerpt=(
            "Why promising a stranger you will finish a task is often more effective "
            "than promising yourself."
        ),
        image="https://images.unsplash.com/photo-1521737604893-d14cc237f11d",
        read_time="6 min read",
        date="Sep 15, 2023",
        body=(
            "We break promises to ourselves all the time, but breaking one to someone "
            "else stings. A professional accountability partner offers no emotional out. "
            "Paying is a financial commitment device and scheduling the call is a social "
            "one; together they make doing the work the only logical option."
        ),
    ),
)


def get_post(post_id: str | int) -> BlogPost:
    """Return the post with *post_id*.

    Raises ``NotFound`` for unknown or non-numeric ids.
    """
    try:
        wanted = int(post_id)
    except (TypeError, ValueError):
        msg = f"No blog post {post_id!r}"
        raise NotFound(msg) from None
    for post in POSTS:
        if post.id == wanted:
            return post
    msg = f"No blog post {post_id!r}"
    raise NotFound(msg)
