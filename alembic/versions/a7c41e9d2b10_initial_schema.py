"""initial_schema

Revision ID: a7c41e9d2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a7c41e9d2b10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create users, programs, roles, positions and the elections tables."""
    op.execute("""
    -- ============================================
    -- USERS & PROGRAMS
    -- ============================================
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        email VARCHAR(255) NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS programs (
        id TEXT PRIMARY KEY,
        name VARCHAR(255) NOT NULL,
        year INTEGER NOT NULL,
        config JSONB,
        status VARCHAR(50) NOT NULL DEFAULT 'active',
        created_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    -- ============================================
    -- PROGRAM ROLES - custom permission bundles per program
    -- ============================================
    CREATE TABLE IF NOT EXISTS program_roles (
        id SERIAL PRIMARY KEY,
        program_id TEXT NOT NULL REFERENCES programs(id) ON DELETE CASCADE,
        name VARCHAR(100) NOT NULL,
        description TEXT,
        is_default BOOLEAN NOT NULL DEFAULT FALSE,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        display_order INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (program_id, name)
    );

    CREATE TABLE IF NOT EXISTS program_role_permissions (
        id SERIAL PRIMARY KEY,
        role_id INTEGER NOT NULL REFERENCES program_roles(id) ON DELETE CASCADE,
        permission VARCHAR(100) NOT NULL,
        UNIQUE (role_id, permission)
    );

    -- One assignment per user per program
    CREATE TABLE IF NOT EXISTS program_assignments (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        program_id TEXT NOT NULL REFERENCES programs(id) ON DELETE CASCADE,
        role VARCHAR(50) NOT NULL,
        program_role_id INTEGER REFERENCES program_roles(id) ON DELETE SET NULL,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, program_id)
    );

    CREATE INDEX IF NOT EXISTS idx_program_assignments_program ON program_assignments(program_id);
    CREATE INDEX IF NOT EXISTS idx_program_assignments_role ON program_assignments(program_role_id);

    -- ============================================
    -- PROGRAM STRUCTURE
    -- ============================================
    CREATE TABLE IF NOT EXISTS program_years (
        id SERIAL PRIMARY KEY,
        program_id TEXT NOT NULL REFERENCES programs(id) ON DELETE CASCADE,
        year INTEGER NOT NULL,
        start_date DATE,
        end_date DATE,
        status VARCHAR(50) NOT NULL DEFAULT 'active',
        notes TEXT,
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    CREATE TABLE IF NOT EXISTS groupings (
        id SERIAL PRIMARY KEY,
        program_id TEXT NOT NULL REFERENCES programs(id) ON DELETE CASCADE,
        grouping_type_id INTEGER,
        parent_grouping_id INTEGER REFERENCES groupings(id) ON DELETE SET NULL,
        name VARCHAR(255) NOT NULL,
        display_order INTEGER NOT NULL DEFAULT 0,
        notes TEXT,
        status VARCHAR(50) NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'retired')),
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_groupings_program ON groupings(program_id, display_order);

    CREATE TABLE IF NOT EXISTS positions (
        id SERIAL PRIMARY KEY,
        program_id TEXT NOT NULL REFERENCES programs(id) ON DELETE CASCADE,
        name VARCHAR(255) NOT NULL,
        description TEXT,
        display_order INTEGER NOT NULL DEFAULT 0,
        status VARCHAR(50) NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'retired')),
        grouping_type_id INTEGER,
        is_elected BOOLEAN NOT NULL DEFAULT FALSE,
        ballot_grouping_type_id INTEGER,
        is_non_partisan BOOLEAN NOT NULL DEFAULT FALSE,
        seat_count INTEGER NOT NULL DEFAULT 1 CHECK (seat_count >= 1),
        requires_declaration BOOLEAN NOT NULL DEFAULT FALSE,
        requires_petition BOOLEAN NOT NULL DEFAULT FALSE,
        petition_signatures INTEGER,
        election_method VARCHAR(50) CHECK (election_method IN ('plurality', 'majority', 'ranked')),
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_positions_program ON positions(program_id, display_order);

    CREATE TABLE IF NOT EXISTS delegates (
        id SERIAL PRIMARY KEY,
        program_year_id INTEGER NOT NULL REFERENCES program_years(id) ON DELETE CASCADE,
        first_name VARCHAR(255) NOT NULL,
        last_name VARCHAR(255) NOT NULL,
        email VARCHAR(255),
        phone VARCHAR(50),
        user_id INTEGER REFERENCES users(id) ON DELETE SET NULL,
        grouping_id INTEGER REFERENCES groupings(id) ON DELETE SET NULL,
        party_id INTEGER,
        status VARCHAR(50) NOT NULL DEFAULT 'active' CHECK (status IN ('active', 'withdrawn')),
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    CREATE INDEX IF NOT EXISTS idx_delegates_program_year ON delegates(program_year_id);

    -- ============================================
    -- ELECTIONS & VOTES
    -- ============================================
    CREATE TABLE IF NOT EXISTS elections (
        id SERIAL PRIMARY KEY,
        program_year_id INTEGER NOT NULL REFERENCES program_years(id) ON DELETE CASCADE,
        position_id INTEGER NOT NULL REFERENCES positions(id),
        grouping_id INTEGER NOT NULL REFERENCES groupings(id),
        method VARCHAR(50) NOT NULL CHECK (method IN ('plurality', 'majority', 'ranked')),
        start_time TIMESTAMPTZ,
        end_time TIMESTAMPTZ,
        status VARCHAR(50) NOT NULL DEFAULT 'scheduled'
            CHECK (status IN ('scheduled', 'open', 'closed', 'archived')),
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP,
        CHECK (start_time IS NULL OR end_time IS NULL OR start_time < end_time)
    );

    CREATE INDEX IF NOT EXISTS idx_elections_program_year ON elections(program_year_id);

    CREATE TABLE IF NOT EXISTS election_votes (
        id SERIAL PRIMARY KEY,
        election_id INTEGER NOT NULL REFERENCES elections(id) ON DELETE CASCADE,
        candidate_delegate_id INTEGER NOT NULL REFERENCES delegates(id),
        voter_delegate_id INTEGER NOT NULL REFERENCES delegates(id),
        vote_rank INTEGER CHECK (vote_rank IS NULL OR vote_rank >= 1),
        created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
    );

    -- One row per voter per election, or one per rank on ranked ballots
    CREATE UNIQUE INDEX IF NOT EXISTS uq_election_votes_voter_rank
        ON election_votes (election_id, voter_delegate_id, COALESCE(vote_rank, 0));

    -- A ranked ballot names each candidate once
    CREATE UNIQUE INDEX IF NOT EXISTS uq_election_votes_ranked_candidate
        ON election_votes (election_id, voter_delegate_id, candidate_delegate_id)
        WHERE vote_rank IS NOT NULL;

    CREATE INDEX IF NOT EXISTS idx_election_votes_candidate
        ON election_votes(election_id, candidate_delegate_id);
    """)


def downgrade() -> None:
    """Drop every table created by this revision."""
    op.execute("""
    DROP TABLE IF EXISTS election_votes;
    DROP TABLE IF EXISTS elections;
    DROP TABLE IF EXISTS delegates;
    DROP TABLE IF EXISTS positions;
    DROP TABLE IF EXISTS groupings;
    DROP TABLE IF EXISTS program_years;
    DROP TABLE IF EXISTS program_assignments;
    DROP TABLE IF EXISTS program_role_permissions;
    DROP TABLE IF EXISTS program_roles;
    DROP TABLE IF EXISTS programs;
    DROP TABLE IF EXISTS users;
    """)
