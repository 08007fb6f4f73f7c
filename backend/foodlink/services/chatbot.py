from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Sequence, Tuple

from fastapi import Request
from loguru import logger

from ..errors import DependencyError
from ..models.user import Role
from ..store import MongoStore
from .lifecycle import DonationLifecycleCoordinator

Responder = Callable[[], Awaitable[str]]

FALLBACK_ANSWER = "I'm sorry, I don't understand. Can you ask about donations, users, or deliveries?"
UNAVAILABLE_ANSWER = "Sorry, I couldn't fetch the data right now."


@dataclass(frozen=True)
class ChatRule:
    keywords: Tuple[str, ...]
    respond: Responder

    def matches(self, question: str) -> bool:
        return any(keyword in question for keyword in self.keywords)


class Chatbot:
    """First matching rule answers; rules are checked in order."""

    def __init__(self, rules: Sequence[ChatRule]) -> None:
        self.rules = list(rules)

    async def answer(self, question: str) -> str:
        lower = question.lower()
        for rule in self.rules:
            if not rule.matches(lower):
                continue
            try:
                return await rule.respond()
            except DependencyError as exc:
                logger.warning("Chatbot lookup failed for {!r}: {}", question, exc)
                return UNAVAILABLE_ANSWER
        return FALLBACK_ANSWER


def reply(text: str) -> Responder:
    async def respond() -> str:
        return text

    return respond


def count_reply(store: MongoStore, template: str, query: Mapping[str, Any] | None = None) -> Responder:
    async def respond() -> str:
        return template.format(count=await store.count(query))

    return respond


def districts_reply(donations: MongoStore) -> Responder:
    async def respond() -> str:
        districts = sorted(d for d in await donations.distinct("district") if d)
        if not districts:
            return "There are no food requests at the moment."
        return f"Food requests are available in the following locations: {', '.join(districts)}."

    return respond


def _rule(keywords: str, respond: Responder) -> ChatRule:
    return ChatRule(tuple(k.strip() for k in keywords.split("|")), respond)


def build_rules(
    donations: MongoStore,
    users: MongoStore,
    pending: MongoStore,
    accepted: MongoStore,
) -> List[ChatRule]:
    return [
        _rule(
            "how many donations|number of donations|total donations|food donations|donations count|count of donations",
            count_reply(donations, "There are currently {count} donations in the system."),
        ),
        _rule(
            "how many users|number of users|total users|registered users|users count|count of users|"
            "platform users|how many people|number of people|registered people",
            count_reply(users, "There are currently {count} users registered."),
        ),
        _rule(
            "how many ngos|number of ngos|total ngos|registered ngos|ngos count|count of ngos|organizations",
            count_reply(users, "There are currently {count} NGOs registered.", {"role": Role.NGO.value}),
        ),
        _rule(
            "how many delivery|number of delivery|total delivery|delivery agents|registered delivery|"
            "delivery count|count of delivery|delivery personnel",
            count_reply(users, "There are currently {count} delivery agents registered.", {"role": Role.DELIVERY.value}),
        ),
        _rule(
            "how many donors|number of donors|total donors|registered donors|donors count|count of donors",
            count_reply(users, "There are currently {count} donors registered.", {"role": Role.DONOR.value}),
        ),
        _rule(
            "pending deliveries|unaccepted deliveries|pending count|how many pending|number of pending|"
            "total pending|count of pending|pending requests",
            count_reply(pending, "There are currently {count} pending deliveries.", {"status": "pending"}),
        ),
        _rule(
            "accepted deliveries|completed deliveries|accepted count|how many accepted|number of accepted|"
            "total accepted|count of accepted|accepted requests|request accepted",
            count_reply(accepted, "There are currently {count} accepted deliveries."),
        ),
        _rule(
            "user name|names|give user|list user|user list|user details|personal information|user info",
            reply("I'm sorry, I can't provide personal user information for privacy reasons."),
        ),
        _rule(
            "location|where|districts|areas|places",
            districts_reply(donations),
        ),
        _rule(
            "hello|hi|hey|greetings|good morning|good afternoon|good evening|howdy",
            reply("Hello! How can I help you with your food donation today?"),
        ),
        _rule(
            "donate|donation|give food|food contribution",
            reply(
                "To donate food, please visit our donate page and fill in the details. "
                "We accept various types of food items."
            ),
        ),
        _rule(
            "contact|email|phone|call|reach|get in touch",
            reply("You can reach the FoodLink team through the contact form or the support email address."),
        ),
        _rule(
            "address|location of office|where are you|office address",
            reply("Our office address is listed on the contact page."),
        ),
        _rule(
            "hours|opening hours|time|working hours|business hours",
            reply("Our office hours are Monday to Friday, 9 AM to 5 PM."),
        ),
        _rule(
            "expiration|expiry|expired",
            reply("We can't accept food near or past its expiration date for safety reasons."),
        ),
        _rule(
            "help|assist|support",
            reply("I'm here to help! Ask me about donating, contacting us, or anything related to food donations."),
        ),
        _rule(
            "bye|goodbye|thanks|thank you|see you|farewell",
            reply("Goodbye! Thank you for your interest in food donation."),
        ),
        _rule(
            "mission|goal|purpose",
            reply("Our mission is to reduce food waste and ensure no one goes hungry by facilitating food donations."),
        ),
        _rule(
            "about|who are you|what is this platform",
            reply("We are a food donation platform connecting donors with NGOs to reduce food waste and help those in need."),
        ),
        _rule(
            "profile|my account",
            reply("The profile page displays your personal information, donation history, and notifications."),
        ),
        _rule(
            "dashboard",
            reply(
                "For NGOs, the dashboard shows accepted donations for management. "
                "For delivery personnel, it shows pending and accepted deliveries."
            ),
        ),
        _rule(
            "ngo",
            reply("NGOs use the platform to view and manage food donations, accepting and assigning deliveries."),
        ),
        _rule(
            "delivery",
            reply("Delivery personnel handle the logistics of picking up and delivering food donations to recipients."),
        ),
        _rule(
            "login|sign in|log in",
            reply("Use the login page to sign in with your email and password based on your role."),
        ),
        _rule(
            "signup|register|sign up|create account",
            reply("The signup page allows new users to register as donors, NGOs, or delivery personnel."),
        ),
        _rule(
            "notifications|notification|updates",
            reply("The notifications feature keeps you updated on donation status, delivery updates, and more."),
        ),
    ]


def build_chatbot(coordinator: DonationLifecycleCoordinator, users: MongoStore) -> Chatbot:
    return Chatbot(build_rules(coordinator.donations, users, coordinator.pending, coordinator.accepted))


def get_chatbot(request: Request) -> Chatbot:
    return request.app.state.chatbot
