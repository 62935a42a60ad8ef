#!/usr/bin/env python3
"""
Seed the database with providers and offers for local development.

Run with: python scripts/seed_offers.py

Input is a JSON file shaped like:

    {
      "providers": [{"email": "...", "display_name": "...", "person_type": "PF", "rating": 4.5}],
      "offers": [{"provider": "<email>", "title": "...", "description": "...", "price": 80,
                  "category": "Educação", "location": {"city": "...", "state": "SP",
                  "coordinates": {"lat": -23.55, "lng": -46.63}}, "tags": ["..."]}]
    }

Without --file a small built-in sample is loaded.

Example usage:
    python scripts/seed_offers.py --init
    python scripts/seed_offers.py --file data/offers.json
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

# Ensure we can import from the project root
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from database.models import User
from database.uow import offer_uow

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_DATA: Dict[str, Any] = {
    "providers": [
        {"email": "ana@example.com", "display_name": "Ana Lima", "person_type": "PF", "rating": 4.8},
        {"email": "contato@limpamais.com.br", "display_name": "Limpa Mais", "person_type": "PJ", "rating": 4.2},
    ],
    "offers": [
        {
            "provider": "ana@example.com",
            "title": "Aulas de violão para iniciantes",
            "description": "Aulas presenciais de violão popular, com material incluso.",
            "price": 80,
            "price_unit": "aula",
            "category": "Educação",
            "subcategory": "Música",
            "images": ["https://picsum.photos/seed/violao/640/480"],
            "tags": ["violão", "música", "iniciante"],
            "location": {"city": "São Paulo", "state": "SP", "coordinates": {"lat": -23.5614, "lng": -46.6559}},
        },
        {
            "provider": "ana@example.com",
            "title": "Reforço escolar de matemática",
            "description": "Reforço para ensino fundamental e médio, online ou presencial.",
            "price": 60,
            "price_unit": "hora",
            "category": "Educação",
            "tags": ["matemática", "reforço"],
            "location": {"city": "São Paulo", "state": "SP"},
        },
        {
            "provider": "contato@limpamais.com.br",
            "title": "Limpeza residencial completa",
            "description": "Equipe com produtos próprios para limpeza pós-obra e faxina pesada.",
            "price": 250,
            "price_unit": "diaria",
            "category": "Limpeza",
            "images": ["https://picsum.photos/seed/limpeza/640/480"],
            "tags": ["faxina", "pós-obra"],
            "location": {"city": "Rio de Janeiro", "state": "RJ", "coordinates": {"lat": -22.9068, "lng": -43.1729}},
        },
    ],
}


def seed(data: Dict[str, Any]) -> int:
    """Insert providers and offers in a single transaction. Returns the number of offers created."""
    with offer_uow() as repo:
        providers: Dict[str, tuple] = {}
        for p in data.get("providers", []):
            user = repo.db.query(User).filter(User.email == p["email"]).one_or_none()
            if user is None:
                user = User(
                    email=p["email"],
                    password_hash=p.get("password_hash", "!"),
                    display_name=p["display_name"],
                    avatar_url=p.get("avatar_url"),
                    person_type=p.get("person_type", "PF"),
                )
                repo.db.add(user)
                repo.flush()
                logger.info(f"Created provider {user.display_name} ({user.id})")
            providers[p["email"]] = (user, p.get("rating", 5.0))

        created = 0
        for offer_data in data.get("offers", []):
            provider_key = offer_data["provider"]
            if provider_key not in providers:
                logger.warning(f"Skipping offer '{offer_data.get('title')}': unknown provider {provider_key}")
                continue
            user, rating = providers[provider_key]
            repo.create_offer(user, offer_data, rating=rating)
            created += 1

    logger.info(f"Seeded {created} offers")
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed providers and offers")
    parser.add_argument("--file", type=Path, help="JSON file with providers and offers")
    parser.add_argument("--init", action="store_true", help="Create tables and search support first")
    args = parser.parse_args()

    if args.init:
        from database.init_db import init_db
        init_db()

    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            data = json.load(f)
    else:
        data = SAMPLE_DATA

    seed(data)


if __name__ == "__main__":
    main()
