from sqlalchemy.orm import declarative_base
from sqlalchemy import *
from datetime import datetime


Base = declarative_base()


class Team(Base):
    __tablename__ = 'teams'

    team_name = Column(String(50), primary_key=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class User(Base):
    __tablename__ = 'users'

    user_id = Column(String(50), primary_key=True)
    username = Column(String(50), nullable=False)
    team_name = Column(String(50), ForeignKey('teams.team_name'), nullable=False, index=True)
    is_active = Column(Boolean(), nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index('ix_users_team_active', 'team_name', 'is_active'),
    )


class PullRequest(Base):
    __tablename__ = 'pullrequests'

    pull_request_id = Column(String(50), primary_key=True)
    name = Column(String(255), nullable=False)
    author_id = Column(String(50), ForeignKey('users.user_id'), nullable=False, index=True)
    status = Column(String(10), nullable=False, default='OPEN', index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    merged_at = Column(DateTime, nullable=True)


class Reviewers(Base):
    __tablename__ = 'reviewers'

    pr_id = Column(String(50), ForeignKey('pullrequests.pull_request_id'), nullable=False, index=True)
    reviewer_id = Column(String(50), ForeignKey('users.user_id'), nullable=False, index=True)
    assigned_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        PrimaryKeyConstraint('pr_id', 'reviewer_id'),
    )
