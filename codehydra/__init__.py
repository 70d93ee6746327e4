"""CodeHydra - git-worktree workspaces with managed agent sessions."""
