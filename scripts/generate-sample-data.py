#!/usr/bin/env python3
"""
SDG Taskboard — Sample Data Generator
Generates demo data shaped like the API's records: users, projects with their
default boards, tasks, badges, awards and the matching activity feed.

Points and levels are derived from completed tasks, so the output obeys the
same rules as the running service (level = points // 100 + 1).

Usage:
    python scripts/generate-sample-data.py
    python scripts/generate-sample-data.py --users 40 --projects 12 --output sample-data.json
"""

import json
import random
import uuid
import argparse
from datetime import datetime, timedelta, timezone
from typing import Any


# ── Configuration ───────────────────────────────────────────

SDG_GOALS = {
    1: "No Poverty", 2: "Zero Hunger", 3: "Good Health", 4: "Quality Education",
    5: "Gender Equality", 6: "Clean Water", 7: "Affordable Energy", 8: "Decent Work",
    9: "Industry & Innovation", 10: "Reduced Inequalities", 11: "Sustainable Cities",
    12: "Responsible Consumption", 13: "Climate Action", 14: "Life Below Water",
    15: "Life on Land", 16: "Peace & Justice", 17: "Partnerships",
}

TASK_TEMPLATES = [
    "Plant {n} trees", "Survey {n} households", "Install {n} solar panels",
    "Run {n} workshops", "Collect {n} kg of plastic", "Map {n} water sources",
    "Train {n} volunteers", "Distribute {n} meal kits", "Repair {n} wells",
]

STATUSES = ["todo", "in_progress", "review", "done"]
PRIORITIES = ["low", "medium", "high", "urgent"]
TYPES = ["task", "task", "feature", "bug", "challenge"]
ROLES = ["admin", "project_manager", "member", "member", "member", "guest"]

BADGES = [
    {"name": "First Steps", "icon": "footprints", "points_required": 100},
    {"name": "Tree Hugger", "icon": "tree", "points_required": 500},
    {"name": "Water Warrior", "icon": "droplet", "points_required": 300},
    {"name": "Climate Champion", "icon": "globe", "points_required": 1000},
]

DEFAULT_COLUMNS = [
    {"id": "todo", "name": "To Do", "order": 0},
    {"id": "in_progress", "name": "In Progress", "order": 1},
    {"id": "review", "name": "Review", "order": 2},
    {"id": "done", "name": "Done", "order": 3},
]

FIRST_NAMES = ["Amara", "Jonas", "Priya", "Mateo", "Aiko", "Kwame", "Sofia", "Lars",
               "Nadia", "Tomas", "Zara", "Ibrahim", "Elena", "Ravi", "Noor", "Diego"]
LAST_NAMES = ["Okafor", "Lindqvist", "Sharma", "Gonzalez", "Tanaka", "Mensah", "Rossi",
              "Berg", "Haddad", "Novak", "Khan", "Diallo", "Petrova", "Iyer", "Saleh", "Reyes"]
COUNTRIES = ["Kenya", "Sweden", "India", "Mexico", "Japan", "Ghana", "Italy", "Brazil"]


class SampleDataGenerator:
    """Generates internally consistent sample data for the SDG Taskboard."""

    def __init__(self, seed: int = 42):
        self.seed = seed
        random.seed(seed)
        self.now = datetime.now(timezone.utc)
        self.activities: list[dict] = []

    def _uuid(self) -> str:
        return str(uuid.uuid4())

    def _past(self, max_days: int = 180) -> datetime:
        return self.now - timedelta(days=random.randint(0, max_days), minutes=random.randint(0, 1439))

    def _activity(self, user_id: str, type_: str, description: str, metadata: dict,
                  created_at: datetime, project_id: str | None = None, task_id: str | None = None) -> None:
        self.activities.append({
            "id": self._uuid(),
            "user_id": user_id,
            "type": type_,
            "description": description,
            "metadata": metadata,
            "project_id": project_id,
            "task_id": task_id,
            "created_at": created_at.isoformat(),
        })

    # ── Generators ──────────────────────────────────────────

    def generate_user(self, index: int) -> dict:
        first = random.choice(FIRST_NAMES)
        last = random.choice(LAST_NAMES)
        return {
            "id": self._uuid(),
            "email": f"{first.lower()}.{last.lower()}{index}@sdg-taskboard.dev",
            "first_name": first,
            "last_name": last,
            "role": "super_admin" if index == 0 else random.choice(ROLES),
            "country": random.choice(COUNTRIES),
            "sdg_alignment": sorted({str(random.randint(1, 17)) for _ in range(random.randint(1, 3))}, key=int),
            "points": 0,
            "level": 1,
            "created_at": self._past(365).isoformat(),
        }

    def generate_project(self, owner: dict) -> tuple[dict, dict]:
        goal = random.randint(1, 17)
        created = self._past(120)
        project = {
            "id": self._uuid(),
            "name": f"{SDG_GOALS[goal]} Initiative {random.randint(1, 99)}",
            "description": f"Community project advancing SDG {goal}",
            "visibility": "public" if random.random() > 0.25 else "private",
            "sdg_tags": [str(goal)],
            "owner_id": owner["id"],
            "created_at": created.isoformat(),
            "updated_at": created.isoformat(),
        }
        board = {
            "id": self._uuid(),
            "name": "Main Board",
            "description": "Default project board",
            "project_id": project["id"],
            "columns": [dict(c) for c in DEFAULT_COLUMNS],
            "created_at": created.isoformat(),
        }
        self._activity(owner["id"], "project_created", f'Created project "{project["name"]}"',
                       {"project_name": project["name"]}, created, project_id=project["id"])
        return project, board

    def generate_task(self, project: dict, board: dict, reporter: dict, assignee: dict | None) -> dict:
        title = random.choice(TASK_TEMPLATES).format(n=random.choice([5, 10, 25, 50, 100]))
        created = self._past(60)
        reward = random.choice([50, 100, 100, 150, 200])
        status = random.choice(STATUSES)
        task = {
            "id": self._uuid(),
            "title": title,
            "type": random.choice(TYPES),
            "priority": random.choice(PRIORITIES),
            "status": status,
            "board_id": board["id"],
            "assignee_id": assignee["id"] if assignee else None,
            "reporter_id": reporter["id"],
            "labels": random.sample(["field", "remote", "community", "research", "funding"], k=2),
            "reward_points": reward,
            "sdg_link": project["sdg_tags"][0],
            "progress": 100 if status == "done" else random.choice([0, 20, 50, 80]),
            "created_at": created.isoformat(),
        }
        self._activity(reporter["id"], "task_created", f'Created task "{title}"',
                       {"task_title": title}, created, project_id=project["id"], task_id=task["id"])

        if status == "done" and assignee:
            assignee["points"] += reward
            assignee["level"] = assignee["points"] // 100 + 1
            done_at = created + timedelta(days=random.randint(1, 20))
            self._activity(
                assignee["id"], "task_completed",
                f'Completed task "{title}" and earned {reward} points',
                {"task_title": title, "points_earned": reward,
                 "total_points": assignee["points"], "level": assignee["level"]},
                done_at, project_id=project["id"], task_id=task["id"],
            )
        return task

    def generate_badges(self) -> list[dict]:
        return [
            {
                "id": self._uuid(),
                "name": b["name"],
                "icon": b["icon"],
                "description": f"Reach {b['points_required']} points",
                "criteria": {"points": b["points_required"]},
                "points_required": b["points_required"],
                "is_active": True,
                "created_at": self._past(365).isoformat(),
            }
            for b in BADGES
        ]

    def award_badges(self, users: list[dict], badges: list[dict]) -> list[dict]:
        """Hand out badges whose threshold a user has reached"""
        awards = []
        for user in users:
            for badge in badges:
                if user["points"] >= badge["points_required"]:
                    earned = self._past(10)
                    awards.append({
                        "id": self._uuid(),
                        "user_id": user["id"],
                        "badge_id": badge["id"],
                        "earned_at": earned.isoformat(),
                    })
                    self._activity(user["id"], "badge_earned", f'Earned the "{badge["name"]}" badge',
                                   {"badge_id": badge["id"], "badge_name": badge["name"]}, earned)
        return awards

    # ── Main Generator ──────────────────────────────────────

    def generate_all(self, counts: dict[str, int] | None = None) -> dict[str, Any]:
        c = counts or {"users": 25, "projects": 8, "tasks_per_project": 12}

        users = [self.generate_user(i) for i in range(c["users"])]
        contributors = [u for u in users if u["role"] != "guest"] or users

        projects, boards, members, tasks = [], [], [], []
        for _ in range(c["projects"]):
            owner = random.choice(contributors)
            project, board = self.generate_project(owner)
            projects.append(project)
            boards.append(board)

            team = random.sample(contributors, k=min(len(contributors), random.randint(2, 5)))
            for member in team:
                if member["id"] != owner["id"]:
                    members.append({
                        "id": self._uuid(),
                        "project_id": project["id"],
                        "user_id": member["id"],
                        "role": "member",
                        "joined_at": project["created_at"],
                    })

            for _ in range(c["tasks_per_project"]):
                assignee = random.choice(team) if random.random() > 0.2 else None
                tasks.append(self.generate_task(project, board, owner, assignee))

        badges = self.generate_badges()
        awards = self.award_badges(users, badges)
        activities = sorted(self.activities, key=lambda a: a["created_at"], reverse=True)

        return {
            "generated_at": self.now.isoformat(),
            "generator": "SDG Taskboard Sample Data Generator v1.0",
            "seed": self.seed,
            "counts": {
                "users": len(users),
                "projects": len(projects),
                "boards": len(boards),
                "project_members": len(members),
                "tasks": len(tasks),
                "badges": len(badges),
                "user_badges": len(awards),
                "activities": len(activities),
            },
            "data": {
                "users": users,
                "projects": projects,
                "boards": boards,
                "project_members": members,
                "tasks": tasks,
                "badges": badges,
                "user_badges": awards,
                "activities": activities,
            },
        }


# ── CLI ─────────────────────────────────────────────────────

def main():
    parser = argparse.ArgumentParser(description="SDG Taskboard Sample Data Generator")
    parser.add_argument("--users", type=int, default=25, help="Number of users")
    parser.add_argument("--projects", type=int, default=8, help="Number of projects")
    parser.add_argument("--tasks", type=int, default=12, help="Tasks per project")
    parser.add_argument("--output", type=str, default="sample-data.json", help="Output file")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--compact", action="store_true", help="Write JSON without indentation")
    args = parser.parse_args()

    generator = SampleDataGenerator(seed=args.seed)
    data = generator.generate_all({
        "users": max(args.users, 1),
        "projects": args.projects,
        "tasks_per_project": args.tasks,
    })

    with open(args.output, "w") as f:
        json.dump(data, f, indent=None if args.compact else 2, default=str)

    counts = data["counts"]
    print(f"Sample data generated: {args.output}")
    for name, count in counts.items():
        print(f"   {name.replace('_', ' ').title()}: {count}")
    print(f"   Total Records: {sum(counts.values())}")


if __name__ == "__main__":
    main()
