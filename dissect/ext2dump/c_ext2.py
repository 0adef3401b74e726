# Reference: https://github.com/torvalds/linux/blob/master/fs/ext2/ext2.h

from dissect import cstruct


ext2_def = """
#define EXT2_SBOFF              1024        // offset to superblock
#define EXT2_SUPER_MAGIC        0xef53

#define EXT2_GOOD_OLD_REV       0           // The good old (original) format
#define EXT2_GOOD_OLD_FIRST_INO 11
#define EXT2_GOOD_OLD_INODE_SIZE 128

#define EXT2_MIN_BLOCK_SIZE     1024

/*
 * Constants relative to the data blocks
 */
#define EXT2_NDIR_BLOCKS        12
#define EXT2_IND_BLOCK          12
#define EXT2_DIND_BLOCK         13
#define EXT2_TIND_BLOCK         14
#define EXT2_N_BLOCKS           15

/*
 * Symlinks shorter than this store their target inside i_block
 */
#define EXT2_FAST_SYMLINK_MAX   60

#define EXT2_NAME_LEN           255
#define EXT2_DIR_PAD            4
#define EXT2_DIR_HEADER_LEN     8

/*
 * Structure of the super block
 */
struct ext2_super_block {
    uint32      s_inodes_count;             /* Inodes count */
    uint32      s_blocks_count;             /* Blocks count */
    uint32      s_r_blocks_count;           /* Reserved blocks count */
    uint32      s_free_blocks_count;        /* Free blocks count */
    uint32      s_free_inodes_count;        /* Free inodes count */
    uint32      s_first_data_block;         /* First Data Block */
    uint32      s_log_block_size;           /* Block size */
    int32       s_log_frag_size;            /* Fragment size */
    uint32      s_blocks_per_group;         /* # Blocks per group */
    uint32      s_frags_per_group;          /* # Fragments per group */
    uint32      s_inodes_per_group;         /* # Inodes per group */
    uint32      s_mtime;                    /* Mount time */
    uint32      s_wtime;                    /* Write time */
    uint16      s_mnt_count;                /* Mount count */
    int16       s_max_mnt_count;            /* Maximal mount count */
    uint16      s_magic;                    /* Magic signature */
    uint16      s_state;                    /* File system state */
    uint16      s_errors;                   /* Behaviour when detecting errors */
    uint16      s_minor_rev_level;          /* minor revision level */
    uint32      s_lastcheck;                /* time of last check */
    uint32      s_checkinterval;            /* max. time between checks */
    uint32      s_creator_os;               /* OS */
    uint32      s_rev_level;                /* Revision level */
    uint16      s_def_resuid;               /* Default uid for reserved blocks */
    uint16      s_def_resgid;               /* Default gid for reserved blocks */
    // These fields are for EXT2_DYNAMIC_REV superblocks only.
    uint32      s_first_ino;                /* First non-reserved inode */
    uint16      s_inode_size;               /* size of inode structure */
    uint16      s_block_group_nr;           /* block group # of this superblock */
    uint32      s_feature_compat;           /* compatible feature set */
    uint32      s_feature_incompat;         /* incompatible feature set */
    uint32      s_feature_ro_compat;        /* readonly-compatible feature set */
    char        s_uuid[16];                 /* 128-bit uuid for volume */
    char        s_volume_name[16];          /* volume name */
    char        s_last_mounted[64];         /* directory where last mounted */
    uint32      s_algorithm_usage_bitmap;   /* For compression */
    uint8       s_prealloc_blocks;          /* Nr of blocks to try to preallocate*/
    uint8       s_prealloc_dir_blocks;      /* Nr to preallocate for dirs */
    uint16      s_padding1;
    char        s_journal_uuid[16];         /* uuid of journal superblock */
    uint32      s_journal_inum;             /* inode number of journal file */
    uint32      s_journal_dev;              /* device number of journal file */
    uint32      s_last_orphan;              /* start of list of inodes to delete */
    uint32      s_hash_seed[4];             /* HTREE hash seed */
    uint8       s_def_hash_version;         /* Default hash version to use */
    uint8       s_reserved_char_pad;
    uint16      s_reserved_word_pad;
    uint32      s_default_mount_opts;
    uint32      s_first_meta_bg;            /* First metablock block group */
    uint32      s_reserved[190];            /* Padding to the end of the block */
};

/*
 * Structure of a blocks group descriptor
 */
struct ext2_group_desc {
    uint32      bg_block_bitmap;            /* Blocks bitmap block */
    uint32      bg_inode_bitmap;            /* Inodes bitmap block */
    uint32      bg_inode_table;             /* Inodes table block */
    uint16      bg_free_blocks_count;       /* Free blocks count */
    uint16      bg_free_inodes_count;       /* Free inodes count */
    uint16      bg_used_dirs_count;         /* Directories count */
    uint16      bg_pad;
    uint32      bg_reserved[3];
};

/*
 * Structure of an inode on the disk
 */
struct ext2_inode {
    uint16      i_mode;                     /* File mode */
    uint16      i_uid;                      /* Low 16 bits of Owner Uid */
    uint32      i_size;                     /* Size in bytes */
    uint32      i_atime;                    /* Access time */
    uint32      i_ctime;                    /* Creation time */
    uint32      i_mtime;                    /* Modification time */
    uint32      i_dtime;                    /* Deletion Time */
    uint16      i_gid;                      /* Low 16 bits of Group Id */
    uint16      i_links_count;              /* Links count */
    uint32      i_blocks;                   /* Blocks count */
    uint32      i_flags;                    /* File flags */
    uint32      i_osd1;                     /* OS dependent 1 */
    uint32      i_block[EXT2_N_BLOCKS];     /* Pointers to blocks */
    uint32      i_generation;               /* File version (for NFS) */
    uint32      i_file_acl;                 /* File ACL */
    uint32      i_dir_acl;                  /* Directory ACL */
    uint32      i_faddr;                    /* Fragment address */
    char        i_osd2[12];                 /* OS dependent 2 */
};

/*
 * The new version of the directory entry. Since EXT2 structures are
 * stored in intel byte order, and the name_len field could never be
 * bigger than 255 chars, it's safe to reclaim the extra byte for the
 * file_type field.
 */
struct ext2_dir_entry_2 {
    uint32      inode;                      /* Inode number */
    uint16      rec_len;                    /* Directory entry length */
    uint8       name_len;                   /* Name length */
    uint8       file_type;
};
"""

c_ext2 = cstruct.cstruct()
c_ext2.load(ext2_def)
